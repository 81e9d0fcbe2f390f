from __future__ import annotations

import re
from uuid import uuid4

# Common command vocabulary, Chinese -> English.
COMMAND_VOCABULARY: dict[str, str] = {
    "帮助": "help",
    "列表": "list",
    "查询": "query",
    "搜索": "search",
    "添加": "add",
    "删除": "delete",
    "修改": "modify",
    "更新": "update",
    "获取": "get",
    "设置": "set",
    "创建": "create",
    "移除": "remove",
    "显示": "show",
    "查看": "view",
    "编辑": "edit",
    "保存": "save",
    "加载": "load",
    "启动": "start",
    "停止": "stop",
    "重启": "restart",
    "状态": "status",
    "信息": "info",
    "配置": "config",
    "管理": "manage",
    "用户": "user",
    "消息": "message",
    "发送": "send",
    "接收": "receive",
    "清除": "clear",
    "重置": "reset",
    "导入": "import",
    "导出": "export",
    "测试": "test",
    "运行": "run",
    "执行": "execute",
    "调用": "call",
    "刷新": "refresh",
    "同步": "sync",
    "连接": "connect",
    "断开": "disconnect",
    "登录": "login",
    "登出": "logout",
    "注册": "register",
    "验证": "verify",
    "授权": "authorize",
    "禁用": "disable",
    "启用": "enable",
    "切换": "toggle",
    "复制": "copy",
    "粘贴": "paste",
    "剪切": "cut",
    "撤销": "undo",
    "重做": "redo",
    "分享": "share",
    "上传": "upload",
    "下载": "download",
    "安装": "install",
    "卸载": "uninstall",
    "备份": "backup",
    "恢复": "restore",
    "统计": "stats",
    "分析": "analyze",
    "报告": "report",
    "通知": "notify",
    "提醒": "remind",
    "订阅": "subscribe",
    "取消": "cancel",
    "确认": "confirm",
    "拒绝": "reject",
    "接受": "accept",
    "批准": "approve",
    "审核": "review",
    "检查": "check",
    "扫描": "scan",
    "过滤": "filter",
    "排序": "sort",
    "分组": "group",
    "合并": "merge",
    "拆分": "split",
    "转换": "convert",
    "翻译": "translate",
    "计算": "calculate",
    "比较": "compare",
    "匹配": "match",
    "替换": "replace",
    "插入": "insert",
    "追加": "append",
    "前置": "prepend",
    "打开": "open",
    "关闭": "close",
    "锁定": "lock",
    "解锁": "unlock",
    "隐藏": "hide",
    "展开": "expand",
    "折叠": "collapse",
    "最小化": "minimize",
    "最大化": "maximize",
    "全屏": "fullscreen",
    "退出": "exit",
    "返回": "back",
    "前进": "forward",
    "跳转": "jump",
    "导航": "navigate",
    "定位": "locate",
    "标记": "mark",
    "高亮": "highlight",
    "选择": "select",
    "取消选择": "deselect",
    "全选": "selectall",
    "反选": "invert",
    "预览": "preview",
    "打印": "print",
    "格式化": "format",
    "美化": "beautify",
    "压缩": "compress",
    "解压": "decompress",
    "加密": "encrypt",
    "解密": "decrypt",
    "签名": "sign",
    "验签": "verifysign",
    "哈希": "hash",
    "编码": "encode",
    "解码": "decode",
    "解析": "parse",
    "生成": "generate",
    "构建": "build",
    "编译": "compile",
    "部署": "deploy",
    "发布": "publish",
    "回滚": "rollback",
    "监控": "monitor",
    "调试": "debug",
    "日志": "log",
    "记录": "record",
    "追踪": "trace",
    "性能": "performance",
    "优化": "optimize",
    "清理": "clean",
    "维护": "maintain",
    "修复": "fix",
    "诊断": "diagnose",
    "健康": "health",
    "版本": "version",
    "关于": "about",
    "许可": "license",
    "文档": "doc",
    "示例": "example",
    "教程": "tutorial",
    "指南": "guide",
    "参考": "reference",
    "索引": "index",
    "目录": "catalog",
    "分类": "category",
    "标签": "tag",
    "评论": "comment",
    "回复": "reply",
    "点赞": "like",
    "收藏": "favorite",
    "关注": "follow",
    "推荐": "recommend",
    "排行": "rank",
    "热门": "hot",
    "最新": "latest",
    "随机": "random",
}

# Longest first so that compound words win over their prefixes.
_ORDERED_VOCABULARY = sorted(COMMAND_VOCABULARY.items(), key=lambda item: len(item[0]), reverse=True)
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9.]")


def normalize_command_name(name: str) -> str:
    """Map an arbitrary command label to a tool-safe identifier.

    Known words are translated, everything outside ``[A-Za-z0-9.]`` is
    removed, and an empty or digit-leading result gets a ``cmd`` prefix.
    Only the empty case is non-deterministic (random suffix).
    """
    result = name
    for source, target in _ORDERED_VOCABULARY:
        result = result.replace(source, target)

    result = _UNSAFE_CHARS.sub("", result)

    if not result or result[0].isdigit():
        result = "cmd" + (result or uuid4().hex[:12])
    return result
