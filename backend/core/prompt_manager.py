"""
Prompt templates for outline and paragraph generation.

Templates are read from ``prompts/<name>.txt`` and fall back to built-in
versions when a file is missing, empty or unreadable.
"""
import logging
from pathlib import Path
from typing import Dict, Optional

from core.config import PROMPTS_DIR

logger = logging.getLogger(__name__)

REQUIRED_PROMPTS = ("outline_generation", "paragraph_generation")


class PromptManager:
    """Loads prompt templates once and fills them in."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = Path(prompts_dir or PROMPTS_DIR)
        self.loaded_prompts: Dict[str, str] = {}
        self.fallback_templates = {
            "outline_generation": self._get_outline_generation_fallback(),
            "paragraph_generation": self._get_paragraph_generation_fallback(),
        }

    def get_prompt(self, prompt_name: str) -> str:
        """
        Template text for a prompt, from file when possible.

        Raises:
            FileNotFoundError: no readable file and no built-in template
        """
        if prompt_name in self.loaded_prompts:
            return self.loaded_prompts[prompt_name]

        template = self._read_file(prompt_name)
        if template is None:
            if prompt_name not in self.fallback_templates:
                raise FileNotFoundError(
                    f"Prompt file not found and no fallback available: {prompt_name}.txt "
                    f"(looked in {self.prompts_dir})"
                )
            logger.info(f"Using fallback template for: {prompt_name}")
            template = self.fallback_templates[prompt_name]

        self.loaded_prompts[prompt_name] = template
        return template

    def render(self, prompt_name: str, **values) -> str:
        """Fill a template; a file template with unknown placeholders falls back to the built-in one."""
        template = self.get_prompt(prompt_name)
        try:
            return template.format(**values)
        except (KeyError, IndexError) as e:
            fallback = self.fallback_templates.get(prompt_name)
            if fallback is None or template is fallback:
                raise
            logger.warning(f"Prompt file {prompt_name}.txt has an unknown placeholder {e}; using built-in template")
            self.loaded_prompts[prompt_name] = fallback
            return fallback.format(**values)

    def _read_file(self, prompt_name: str) -> Optional[str]:
        prompt_file = self.prompts_dir / f"{prompt_name}.txt"
        if not prompt_file.exists():
            return None
        try:
            template = prompt_file.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to read prompt file {prompt_file}: {e}")
            return None
        if not template.strip():
            logger.warning(f"Prompt file is empty: {prompt_file}")
            return None
        return template

    def _get_outline_generation_fallback(self) -> str:
        """Fallback template for outline generation."""
        return """You are an expert curriculum designer.

Create a table of contents for learning "{topic}" at {difficulty} level.
{context_block}
Requirements:
- At most {max_chapters} chapters that progress from fundamentals to application
- Each chapter has between {min_paragraphs} and {max_paragraphs} paragraphs
- Every paragraph gets a one-line summary previewing what it will explain
- Estimate the total learning time in minutes

Respond with JSON only:
{{
  "title": "Course title",
  "description": "One or two sentences",
  "difficulty": "{difficulty}",
  "estimated_minutes": 60,
  "chapters": [
    {{
      "title": "Chapter title",
      "description": "What the chapter covers",
      "paragraph_summaries": ["summary 1", "summary 2"]
    }}
  ]
}}"""

    def _get_paragraph_generation_fallback(self) -> str:
        """Fallback template for single paragraph generation."""
        return """You are writing one paragraph of a {difficulty}-level course on "{topic}".

CHAPTER: {chapter_title}
PARAGRAPH {paragraph_index} SUMMARY: {summary}
PREVIOUS PARAGRAPH: {previous_summary}

Write only this paragraph, in at most {max_words} words.
{examples_instruction}
Do not add headings, lists or a conclusion for the chapter."""


# Global prompt manager instance
prompt_manager = PromptManager()
