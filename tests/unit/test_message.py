import pytest

from waec_insights.errors import TurnFinalizedError
from waec_insights.message import Turn, TurnRole


def test_user_turn_is_created_finalized():
    turn = Turn.user("What is the pass rate?")
    assert turn.role is TurnRole.USER
    assert turn.finalized
    with pytest.raises(TurnFinalizedError):
        turn.append("!")


def test_assistant_turn_grows_until_finalized():
    turn = Turn.assistant()
    turn.append("Pass ")
    turn.append("rates")
    assert turn.content == "Pass rates"

    turn.finalize()
    with pytest.raises(TurnFinalizedError):
        turn.append(" rose.")
    with pytest.raises(TurnFinalizedError):
        turn.replace("Sorry")
    assert turn.content == "Pass rates"


def test_replace_discards_partial_content():
    turn = Turn.assistant()
    turn.append("partial")
    turn.replace("Sorry")
    assert turn.content == "Sorry"


def test_role_serializes_by_value():
    dumped = Turn.assistant("hi", finalized=True).model_dump()
    assert dumped == {"role": "assistant", "content": "hi", "finalized": True}
