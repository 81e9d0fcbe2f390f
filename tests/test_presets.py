import asyncio
import json

import pytest
from langchain_core.messages import AIMessage, SystemMessage

from chat_actions.errors import PresetNotFound
from chat_actions.presets import load_presets, preset_from_instruction


def test_load_presets_from_directory(tmp_path) -> None:
    (tmp_path / "cat.json").write_text(
        json.dumps(
            {
                "name": "cat",
                "keywords": ["cat", "kitty"],
                "prompts": [{"role": "system", "content": "Meow."}, {"role": "assistant", "content": "Purr."}],
            }
        ),
        encoding="utf-8",
    )
    (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

    store = load_presets(tmp_path)
    preset = asyncio.run(store.get_preset("kitty"))

    assert store.list_preset_names() == ["cat"]
    assert preset.name == "cat"
    assert isinstance(preset.messages[0], SystemMessage)
    assert isinstance(preset.messages[1], AIMessage)


def test_unknown_preset_raises(tmp_path) -> None:
    store = load_presets(tmp_path)

    with pytest.raises(PresetNotFound):
        asyncio.run(store.get_preset("nope"))


def test_preset_from_instruction() -> None:
    preset = preset_from_instruction("ask", "Be brief.")
    empty = preset_from_instruction("ask", "   ")

    assert preset.trigger_keywords == ["ask"]
    assert [m.content for m in preset.messages] == ["Be brief."]
    assert empty.messages == []
