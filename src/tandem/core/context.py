# context.py - Context Constructor
#
# Builds the list[Message] for each model inference call.
# Handles:
#   - Instruction rendering against session state (Jinja2, `{key}` syntax)
#   - Extra instruction sections (e.g. the transfer prompt)
#   - Rewriting other agents' messages as context for the current agent

from pathlib import Path
from typing import Optional

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from .errors import InstructionRenderError
from .models import Message, TranscriptEntry, USER, ASSISTANT, TOOL
from .state import SessionState

# Instructions reference session values as `{key}`. Jinja2 block and
# comment tags (`{% %}`, `{# #}`) keep working.
_instruction_env = Environment(
    variable_start_string="{",
    variable_end_string="}",
    undefined=StrictUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)

TEMPLATE_DIR = Path(__file__).parent.parent / "prompts" / "templates"


def load_template(name: str):
    """Load one of the package's own Jinja2 templates (standard syntax)."""
    return Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True).from_string(
        (TEMPLATE_DIR / name).read_text(encoding="utf-8")
    )


class ContextConstructor:
    def __init__(
        self,
        agent_name: str,
        instruction: str = "",
        instruction_file: Optional[str] = None,
        extra_sections: Optional[list[str]] = None,
    ):
        self.agent_name = agent_name
        self.extra_sections = list(extra_sections or [])

        # Resolve instruction: file takes priority over string
        if instruction_file:
            path = Path(instruction_file)
            if not path.exists():
                raise FileNotFoundError(f"Instruction file not found: {instruction_file}")
            self.instruction = path.read_text(encoding="utf-8")
        else:
            self.instruction = instruction

        try:
            self.template = _instruction_env.from_string(self.instruction)
        except TemplateSyntaxError as e:
            raise InstructionRenderError(
                f"Invalid instruction template for agent '{agent_name}': {e}",
                agent_name=agent_name,
            ) from e

    def render_instruction(self, state: SessionState) -> str:
        """Render the instruction with the current session values."""
        try:
            rendered = self.template.render(**state.snapshot())
        except UndefinedError as e:
            raise InstructionRenderError(
                f"Instruction of agent '{self.agent_name}' references a missing "
                f"session key: {e.message}",
                agent_name=self.agent_name,
            ) from e
        sections = [rendered.strip()] + self.extra_sections
        return "\n\n".join(s for s in sections if s)

    def build(self, instruction: str, transcript: list[TranscriptEntry]) -> list[Message]:
        """
        Model input for this agent: the system instruction followed by the
        run transcript. Messages authored by other agents are rewritten
        as user context so the model sees a coherent conversation.
        """
        messages = []
        if instruction:
            messages.append(Message.system(instruction))

        for entry in transcript:
            if entry.agent_name in ("", self.agent_name) or entry.message.role == USER:
                messages.append(entry.message)
                continue
            rewritten = self._as_context(entry)
            if rewritten is not None:
                messages.append(rewritten)
        return messages

    def _as_context(self, entry: TranscriptEntry) -> Optional[Message]:
        msg = entry.message
        lines = []
        if msg.role == ASSISTANT:
            if msg.content:
                lines.append(f"For context: [{entry.agent_name}] said: {msg.content}.")
            for call in msg.tool_calls:
                lines.append(
                    f"For context: [{entry.agent_name}] called tool: `{call.name}` "
                    f"with arguments: {call.arguments}."
                )
        elif msg.role == TOOL:
            lines.append(
                f"For context: [{entry.agent_name}] `{msg.name}` tool returned result: {msg.content}."
            )
        if not lines:
            return None
        return Message.user("\n".join(lines))
