"""
Centralized prompt file management with fallback templates.
"""
import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

from core.config import COURSE_LANGUAGE, PROMPTS_DIR

logger = logging.getLogger(__name__)

REQUIRED_PROMPTS = [
    "outline",
    "section_text",
    "video_pick",
    "quiz_gen",
    "hint_gen",
    "essay_grade",
    "chat_system",
]


def describe_audience(tags: Optional[Iterable[str]]) -> str:
    """
    Render audience tags for a prompt.

    Numeric tags are school grades, "other" means a general audience.
    """
    parts = []
    for tag in tags or []:
        tag = str(tag).strip()
        if not tag:
            continue
        if tag.isdigit():
            parts.append(f"grade {tag} students")
        elif tag == "other":
            parts.append("a general audience")
        else:
            parts.append(tag)
    return ", ".join(parts) if parts else "unspecified"


class PromptManager:
    """Manages prompt file loading with consistent fallback behavior."""

    def __init__(self, prompts_dir: Path = PROMPTS_DIR, language: str = COURSE_LANGUAGE):
        self.prompts_dir = prompts_dir
        self.language = language
        self.loaded_prompts: Dict[str, str] = {}

        self.fallback_templates = {
            "outline": self._get_outline_fallback(),
            "section_text": self._get_section_text_fallback(),
            "video_pick": self._get_video_pick_fallback(),
            "quiz_gen": self._get_quiz_gen_fallback(),
            "hint_gen": self._get_hint_gen_fallback(),
            "essay_grade": self._get_essay_grade_fallback(),
            "chat_system": self._get_chat_system_fallback(),
        }

    def get_prompt(self, prompt_name: str) -> str:
        """
        Load prompt by name with fallback.

        Args:
            prompt_name: Name of prompt file (without .txt extension)

        Returns:
            Prompt template string
        """
        if prompt_name in self.loaded_prompts:
            return self.loaded_prompts[prompt_name]

        prompt_file = self.prompts_dir / f"{prompt_name}.txt"

        if prompt_file.exists():
            try:
                template = prompt_file.read_text(encoding="utf-8")
                if not template.strip():
                    raise ValueError(f"Prompt file is empty: {prompt_file}")

                self.loaded_prompts[prompt_name] = template
                return template

            except (OSError, ValueError) as e:
                logger.warning("Failed to load prompt file %s: %s", prompt_file, e)

        if prompt_name in self.fallback_templates:
            logger.info("Using fallback template for: %s", prompt_name)
            template = self.fallback_templates[prompt_name]
            self.loaded_prompts[prompt_name] = template
            return template

        raise FileNotFoundError(
            f"Prompt file not found and no fallback available: {prompt_name}.txt. "
            f"Expected at: {prompt_file}"
        )

    def render(self, prompt_name: str, **values) -> str:
        """Fill a template; the course language is always available."""
        values.setdefault("language", self.language)
        return self.get_prompt(prompt_name).format(**values)

    def _get_outline_fallback(self) -> str:
        return """You are a course design assistant. Reply in {language}.

Course topic: {topic}
Audience: {audience}
{existing_titles}
Produce exactly {count} new chapter titles for this course, without repeating
any existing chapter. Return a JSON array of strings only, no numbering."""

    def _get_section_text_fallback(self) -> str:
        return """You are a course designer. Reply in {language}.

Write lecture notes of at most {max_chars} characters for the chapter
"{section_title}" of the course "{course_title}" (audience: {audience}).
Return plain markdown only."""

    def _get_video_pick_fallback(self) -> str:
        return """Recommend one YouTube video for the chapter "{section_title}"
(audience: {audience}). Chapter notes:
{section_content}

Return only the full video URL."""

    def _get_quiz_gen_fallback(self) -> str:
        return """You are a course designer. Reply in {language}.

Write {num_questions} quiz questions for the chapter "{section_title}"
(audience: {audience}) using these question types: {question_types}.
Chapter notes:
{section_content}

Return a JSON array only:
[{{"question_text": "...", "options": ["...", "..."], "answer": "...", "hint": "..."}}]
For true/false questions the options are exactly ["是", "否"] and the answer is one of them."""

    def _get_hint_gen_fallback(self) -> str:
        return """Give a short hint, in {language}, for the question "{question}"
without revealing the answer (audience: {audience}). Chapter notes:
{section_content}"""

    def _get_essay_grade_fallback(self) -> str:
        return """You are a teacher. Reply in {language}.

Give constructive feedback on this answer to the discussion of chapter
"{section_title}". Chapter notes:
{section_content}

Student answer:
{user_text}"""

    def _get_chat_system_fallback(self) -> str:
        return """You are a course tutor. Reply in {language} (audience: {audience}).
Answer student questions using only the course content below. If the content
does not cover a question, say so honestly.

{all_content}"""
