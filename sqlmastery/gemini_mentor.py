"""
Gemini AI mentor
Forwards a learner's free-text question, with optional level and query
context, to Gemini and returns the answer text.
"""
import logging
from typing import Optional

import google.generativeai as genai

from .config import Config

logger = logging.getLogger(__name__)


class MentorNotConfiguredError(Exception):
    """Raised when no Gemini API key is available"""
    pass


class SQLMentor:
    """Concise SQL tutoring answers that stop short of full solutions"""

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        self.api_key = api_key if api_key is not None else Config.GEMINI_API_KEY
        self.model_name = model_name or Config.GEMINI_MODEL
        self._model = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_model(self):
        if not self.is_configured:
            raise MentorNotConfiguredError("AI is not configured")
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    @staticmethod
    def build_prompt(question: str, level_id: Optional[int] = None,
                     current_query: Optional[str] = None) -> str:
        prompt = f"You are a helpful SQL mentor for a SQL levels game.\nQuestion: {question}\n"
        if level_id:
            prompt += f"Level: {level_id}\n"
        if current_query:
            prompt += f"Current Query: {current_query}\n"
        prompt += ("Respond concisely with steps and a tiny example, "
                   "do not give the full solution unless asked.")
        return prompt

    async def ask(self, question: str, level_id: Optional[int] = None,
                  current_query: Optional[str] = None) -> str:
        model = self._get_model()
        prompt = self.build_prompt(question, level_id, current_query)

        response = await model.generate_content_async(prompt)
        answer = (response.text or "").strip() if response.candidates else ""

        logger.info(f"Mentor answered question for level {level_id}")
        return answer or "No answer"
