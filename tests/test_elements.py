from chat_actions.elements import SENTINEL_ATTR, SENTINEL_VALUE, Element, image, parse, plain_text, splice_text, text


def test_splice_keeps_first_text_and_drops_rest() -> None:
    picture = image("https://example.com/a.png")
    elements = [picture, text("A"), text("B")]

    result = splice_text(elements, "C")

    assert len(result) == 2
    assert result[0] is picture
    assert result[1].type == "text"
    assert result[1].content == "C"
    assert result[1].attrs[SENTINEL_ATTR] == SENTINEL_VALUE
    assert elements[1].content == "A"


def test_splice_without_text_appends_trailing_text() -> None:
    first = image("https://example.com/a.png")
    second = image("https://example.com/b.png")

    result = splice_text([first, second], "C")

    assert result[:2] == [first, second]
    assert result[2].type == "text"
    assert result[2].content == "C"


def test_splice_preserves_non_text_order() -> None:
    a = image("a")
    b = Element("at", {"id": "1"})
    c = image("c")

    result = splice_text([a, text("x"), b, text("y"), c], "new")

    assert [el.type for el in result] == ["img", "text", "at", "img"]
    assert result[0] is a and result[2] is b and result[3] is c


def test_parse_extracts_images_and_unescapes() -> None:
    elements = parse('look &amp; see <img src="data:image/png;base64,AAA"/> done')

    assert [el.type for el in elements] == ["text", "img", "text"]
    assert elements[0].content == "look & see "
    assert elements[1].attrs["src"] == "data:image/png;base64,AAA"
    assert plain_text(elements) == "look & see  done"


def test_parse_empty_string() -> None:
    assert parse("") == []
