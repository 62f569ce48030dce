"""Build the single instruction string sent to the text endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from nal1.config import InferenceConfig, ModeOption
    from nal1.storage.models import Attachment


def build_instruction(
    prompt: str,
    mode: ModeOption | None,
    attachments: Sequence[Attachment],
    config: InferenceConfig,
) -> str:
    """Combine persona, mode directive, attachment note and the user prompt.

    Only attachment names reach the endpoint; payloads stay local.
    """
    parts = [config.persona, config.language_directive]
    if mode is not None:
        parts.append(f"Current mode: {mode.name}.")
        if mode.prompt:
            parts.append(f"Instructions: {mode.prompt}")
    parts.append("Output formatted in Markdown.")

    system = " ".join(parts)
    if attachments:
        names = ", ".join(a.name for a in attachments)
        system += (
            f"\n\n[USER ATTACHED FILES: {names}]. "
            "Please acknowledge these files in your analysis."
        )

    return f"{system}\nUser: {prompt}"
