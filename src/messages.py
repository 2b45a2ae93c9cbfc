"""Collapse a ModelMessage list into the system -> context -> user layout every adapter sends."""

from dataclasses import dataclass, field

from src.models import ModelMessage

EMPTY_PROMPT = "No prompt provided."


@dataclass(frozen=True)
class NormalizedPrompt:
    system: str | None
    user: str
    history: tuple[str, ...] = field(default_factory=tuple)  # assistant turns, in order

    def chat_messages(self) -> list[dict[str, str]]:
        """OpenAI-style role/content list: system, assistant turns, final user block."""
        messages: list[dict[str, str]] = []
        if self.system:
            messages.append({"role": "system", "content": self.system})
        messages.extend({"role": "assistant", "content": h} for h in self.history)
        messages.append({"role": "user", "content": self.user})
        return messages

    def folded_user(self) -> str:
        """User block with assistant turns folded in, for single-turn vendors."""
        if not self.history:
            return self.user
        earlier = "\n\n".join(f"Previous response:\n{h}" for h in self.history)
        return f"{earlier}\n\n{self.user}"

    def render(self, folded: bool = False) -> str:
        """Plain-text rendering of what is sent, in wire order."""
        if folded:
            parts = [f"system: {self.system}"] if self.system else []
            parts.append(f"user: {self.folded_user()}")
            return "\n\n".join(parts)
        return "\n\n".join(f"{m['role']}: {m['content']}" for m in self.chat_messages())

    def with_system_suffix(self, extra: str) -> "NormalizedPrompt":
        system = f"{self.system}\n\n{extra}" if self.system else extra
        return NormalizedPrompt(system=system, user=self.user, history=self.history)


def normalize_messages(messages: list[ModelMessage]) -> NormalizedPrompt:
    """Concatenate system, context and user entries; keep assistant entries as turns.

    The composed user block is ``Context:`` followed by the context entries,
    then the user entries. Blank entries are dropped.
    """
    system_parts: list[str] = []
    context_parts: list[str] = []
    user_parts: list[str] = []
    history: list[str] = []

    for message in messages:
        text = message.content.strip()
        if not text:
            continue
        if message.role == "system":
            system_parts.append(text)
        elif message.role == "context":
            context_parts.append(text)
        elif message.role == "assistant":
            history.append(text)
        else:
            user_parts.append(text)

    user_block = ""
    if context_parts:
        user_block = "Context:\n" + "\n\n".join(context_parts)
    if user_parts:
        joined = "\n\n".join(user_parts)
        user_block = f"{user_block}\n\n{joined}" if user_block else joined

    return NormalizedPrompt(
        system="\n\n".join(system_parts) or None,
        user=user_block or EMPTY_PROMPT,
        history=tuple(history),
    )


def user_message(prompt: str) -> list[ModelMessage]:
    return [ModelMessage(role="user", content=prompt)]
