"""
System instruction composition.
"""

from typing import Iterable, Optional

from ..models.records import UserBehaviorProfile

INTEGRATION_LABELS = {
    "jira": "Jira",
    "salesforce": "Salesforce",
    "github": "GitHub",
    "confluence": "Confluence",
}

RESPONSE_TYPE_INSTRUCTIONS = {
    "analytical": "Analyze the messages in this channel for insights, patterns, and key points.",
    "summary": "Provide a concise summary of the recent activity in this conversation.",
    "questions": "Ask clarifying questions that help move the discussion forward.",
    "insights": "Share observations and actionable insights about the discussion.",
}


def integration_label(name: str) -> str:
    return INTEGRATION_LABELS.get(name.lower(), name.capitalize())


def compose(base_instruction: str, profile: Optional[UserBehaviorProfile] = None, integrations: Iterable[str] = ()) -> str:
    """Merge the base instruction, a user's behaviour profile and available integrations."""
    lines = [base_instruction.strip()]

    if profile is not None:
        lines.append(f"Respond in a {profile.tone} tone.")
        lines.append(f"The user works in a {profile.business_type} business context.")
        if profile.company_name:
            lines.append(f"The user's company is {profile.company_name}.")
        if profile.additional_directions:
            lines.append(f"Additional directions: {profile.additional_directions.strip()}")

    labels = [integration_label(name) for name in integrations]
    if labels:
        lines.append(
            f"Available integrations: {', '.join(labels)}. "
            "You can mention that the user may ask you to create records in these systems."
        )

    return "\n".join(lines)


def monitor_instruction(base_instruction: str, response_type: str) -> str:
    """Base instruction for replies in a monitored channel."""
    directive = RESPONSE_TYPE_INSTRUCTIONS.get(response_type, RESPONSE_TYPE_INSTRUCTIONS["analytical"])
    return f"{base_instruction.strip()}\n{directive}"
