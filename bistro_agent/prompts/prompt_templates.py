"""Turn a policy action into the instruction handed back to the language model."""

from bistro_agent.conversation.policy import Action, ActionKind

_CLOSING_KINDS = {ActionKind.COMPLETE, ActionKind.FAIL, ActionKind.ABANDON}


def build_action_instruction(action: Action) -> str:
    """Build the tool result the model voices for this turn."""
    lines = [f'Say this to the caller, in your own words: "{action.text}"']
    if action.kind == ActionKind.CONFIRM:
        lines.append("Read every detail back exactly as given and wait for their answer.")
    elif action.kind == ActionKind.ASK and action.field_name:
        lines.append(f"Only ask for the {action.field_name.replace('_', ' ')}.")
    elif action.kind in _CLOSING_KINDS:
        lines.append("Then say goodbye. Do not ask any further questions.")
    return "\n".join(lines)
