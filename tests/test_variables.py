from datetime import datetime

from chat_actions.variables import build_variables, render_variables
from tests.fakes import make_session

EXPECTED_KEYS = {"name", "date", "bot_id", "is_group", "is_private", "user_id", "user", "built", "noop", "time", "weekday"}


def test_variable_keys_and_values() -> None:
    session = make_session(nick="Ali", guild_id="-100", is_direct=False)
    now = datetime(2024, 5, 6, 7, 8, 9)

    variables = build_variables(session, ["helper_bot"], preset="ask", now=now)

    assert set(variables) == EXPECTED_KEYS
    assert variables["name"] == "helper_bot"
    assert variables["date"] == "2024-05-06 07:08:09"
    assert variables["time"] == "07:08:09"
    assert variables["weekday"] == "Monday"
    assert variables["is_group"] == "true"
    assert variables["is_private"] == "false"
    assert variables["user"] == "Ali"
    assert variables["built"] == {"preset": "ask", "conversation_id": "-100"}


def test_user_falls_back_to_username_and_user_id_to_zero() -> None:
    session = make_session(user_id="", username="alice")

    variables = build_variables(session, [])

    assert variables["user"] == "alice"
    assert variables["user_id"] == "0"
    assert variables["name"] == ""


def test_variables_are_fresh_per_call() -> None:
    session = make_session()

    first = build_variables(session, ["bot"])
    second = build_variables(session, ["bot"])

    assert first is not second
    assert first["built"] is not second["built"]


def test_render_variables_handles_dotted_and_unknown() -> None:
    variables = {"user": "Bob", "built": {"conversation_id": None, "preset": "p"}}

    rendered = render_variables("{user} in {built.conversation_id}/{built.preset} {missing} {built}", variables)

    assert rendered == "Bob in /p {missing} {built}"
