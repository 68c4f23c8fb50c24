"""Topic catalogue and prompt builders for conversation practice and exercises."""

import json
import re

from .access import AccessTier, has_access, limits_for
from .session_store import ConversationConfig, Message, Session

TOPICS: dict[str, list[dict[str, str]]] = {
    "beginner": [
        {"id": "meeting_new_people", "name": "Meeting New People", "example": "¡Hola! ¿Cómo te llamas?"},
        {"id": "ordering_food", "name": "Ordering Food", "example": "Quisiera un café, por favor."},
        {"id": "basic_directions", "name": "Getting Directions", "example": "¿Dónde está la biblioteca?"},
        {"id": "shopping_basics", "name": "Shopping Basics", "example": "¿Cuánto cuesta esto?"},
        {"id": "talking_about_family", "name": "Talking About Family", "example": "Tengo dos hermanos."},
    ],
    "intermediate": [
        {"id": "making_plans", "name": "Making Plans", "example": "¿Quieres ir al cine este fin de semana?"},
        {"id": "discussing_hobbies", "name": "Discussing Hobbies", "example": "Me gusta jugar al fútbol."},
        {"id": "at_the_doctor", "name": "At the Doctor", "example": "No me siento bien hoy."},
        {"id": "renting_an_apartment", "name": "Renting an Apartment", "example": "¿Cuánto es el alquiler mensual?"},
        {"id": "describing_your_day", "name": "Describing Your Day", "example": "Hoy tuve un día muy ocupado."},
    ],
    "advanced": [
        {"id": "discussing_current_events", "name": "Current Events", "example": "¿Qué opinas sobre las recientes elecciones?"},
        {"id": "environmental_issues", "name": "Environmental Issues", "example": "El cambio climático es un problema grave."},
        {"id": "cultural_differences", "name": "Cultural Differences", "example": "En mi país las costumbres son diferentes."},
        {"id": "technology_and_innovation", "name": "Technology & Innovation", "example": "La inteligencia artificial está cambiando nuestra sociedad."},
        {"id": "career_development", "name": "Career Development", "example": "Quiero mejorar mis habilidades profesionales."},
    ],
}


def topics_for_tier(tier: AccessTier) -> dict[str, list[dict[str, str]]]:
    allowed = limits_for(tier).difficulties
    return {level: TOPICS[level] for level in TOPICS if level in allowed}


def start_prompt(config: ConversationConfig, slang_allowed: bool) -> str:
    lines = [
        f"You are having a Spanish conversation"
        f"{' with multiple people' if config.participant_count > 1 else ''}"
        f" about \"{config.topic}\" at a {config.difficulty_level} level.",
    ]
    if config.include_slang and slang_allowed:
        lines.append("Include some common Spanish slang and colloquial expressions.")
    if config.focus_areas:
        lines.append(f"Try to incorporate these language aspects: {', '.join(config.focus_areas)}.")
    lines.extend([
        "",
        "Start the conversation with a greeting and a question or statement about the topic.",
        "If there are multiple participants, include their contributions too.",
        "",
        "Return only the conversation itself, making it natural and educational.",
    ])
    return "\n".join(lines)


def correction_extras(tier: AccessTier, include_corrections: bool, include_alternatives: bool) -> str:
    extras = []
    if has_access(tier, AccessTier.PREMIUM):
        if include_corrections:
            extras.append("If there are any grammar or vocabulary errors in my message, gently correct them.")
        if include_alternatives:
            extras.append("Suggest alternative ways I could have expressed the same idea.")
    elif limits_for(tier).corrections and include_corrections:
        extras.append("If there are any major grammar errors in my message, briefly correct them.")
    return " ".join(extras)


def render_history(messages: list[Message], limit: int) -> str:
    recent = messages[-limit:] if limit > 0 else []
    return "\n\n".join(
        f"{'User' if m.role == 'user' else 'System'}: {m.content}" for m in recent
    )


def continue_prompt(session: Session, history: str, extras: str) -> str:
    lines = [
        f"Continue this Spanish conversation about \"{session.topic}\" at a {session.difficulty_level} level.",
        "",
        "Previous Messages:",
        history,
        "",
        f"Respond to the user's last message in a natural way. {extras}".rstrip(),
    ]
    if session.include_slang:
        lines.append("Include some common Spanish slang or colloquial expressions if appropriate.")
    if session.focus_areas:
        lines.append(f"Try to incorporate these language aspects: {', '.join(session.focus_areas)}.")
    lines.extend(["", "Return only the conversation continuation."])
    return "\n".join(lines)


def exercise_prompt(
    exercise_type: str,
    count: int,
    difficulty_level: str,
    focus_area: str | None = None,
    vocabulary: list[str] | None = None,
    grammar: list[str] | None = None,
) -> str:
    focus = f' focusing on "{focus_area}"' if focus_area else ""
    lines = [
        f'Generate {count} Spanish language exercises of type "{exercise_type}" '
        f'with difficulty "{difficulty_level}"{focus}.',
        "",
        "Each exercise should have:",
        "1. A unique ID",
        "2. A clear instruction",
        "3. The exercise content",
        "4. The correct answer(s)",
        "5. Explanation for the answer",
        "",
    ]
    if vocabulary:
        lines.append(f"Include these specific vocabulary words: {', '.join(vocabulary)}")
    if grammar:
        lines.append(f"Include these specific grammar concepts: {', '.join(grammar)}")
    lines.append("Format the response as a valid JSON object with an array of exercises.")
    return "\n".join(lines)


_FENCED_JSON = re.compile(r"```json\s*\n(.*?)```", re.DOTALL)
_BARE_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_exercise_reply(text: str) -> list | dict:
    """Pull the exercise list out of a model reply.

    Accepts a ```json fenced block, the whole reply, or the outermost
    ``{...}`` in surrounding prose. A top-level ``{"exercises": [...]}`` is
    unwrapped. Raises ValueError when no JSON can be decoded.
    """
    fenced = _FENCED_JSON.search(text)
    if fenced:
        data = json.loads(fenced.group(1))
    else:
        try:
            data = json.loads(text)
        except ValueError:
            bare = _BARE_OBJECT.search(text)
            if bare is None:
                raise
            data = json.loads(bare.group(0))
    if isinstance(data, dict) and "exercises" in data:
        return data["exercises"]
    return data
