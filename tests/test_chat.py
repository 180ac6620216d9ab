import pytest
from sehri_milan.chat import ChatSession
from sehri_milan.transport import TransportError


class ScriptedTransport:
    def __init__(self, *replies, fail: bool = False):
        self.replies = list(replies)
        self.fail = fail
        self.prompts: list[str] = []

    async def stream(self, prompt: str):
        self.prompts.append(prompt)
        for fragment in self.replies.pop(0):
            yield fragment
        if self.fail:
            raise TransportError("connection dropped")


async def _collect(session: ChatSession, message: str) -> str:
    return "".join([fragment async for fragment in session.send(message)])


@pytest.mark.asyncio
async def test_reply_is_streamed_and_recorded():
    transport = ScriptedTransport(["Try ", "dates ", "first."])
    session = ChatSession(transport, "You are Nur.")

    reply = await _collect(session, "  What should I eat at Iftar?  ")

    assert reply == "Try dates first."
    assert session.history == [("user", "What should I eat at Iftar?"), ("assistant", "Try dates first.")]
    assert transport.prompts[0] == (
        "You are Nur.\n\nChat History:\n\n\nUser: What should I eat at Iftar?\n\nAssistant:"
    )


@pytest.mark.asyncio
async def test_history_is_resent_each_turn():
    transport = ScriptedTransport(["Dates."], ["Soak them overnight."])
    session = ChatSession(transport, "You are Nur.")

    await _collect(session, "Iftar idea?")
    await _collect(session, "And lentils?")

    assert "User: Iftar idea?\nAssistant: Dates." in transport.prompts[1]
    assert transport.prompts[1].endswith("User: And lentils?\n\nAssistant:")


@pytest.mark.asyncio
async def test_empty_message_rejected():
    session = ChatSession(ScriptedTransport(), "You are Nur.")
    with pytest.raises(ValueError, match="empty"):
        await _collect(session, "   ")
    assert session.history == []


@pytest.mark.asyncio
async def test_failed_turn_is_dropped_from_history():
    transport = ScriptedTransport(["Partial"], ["Welcome."])
    transport.fail = True
    session = ChatSession(transport, "You are Nur.")
    with pytest.raises(TransportError):
        await _collect(session, "Hello")
    assert session.history == []

    transport.fail = False
    await _collect(session, "Salaam")
    assert "Hello" not in transport.prompts[1]
    assert session.history == [("user", "Salaam"), ("assistant", "Welcome.")]
