"""
LLM Service for the clinical summary
"""
import re
import time
from typing import Dict, List, Optional
from openai import AsyncOpenAI, OpenAIError
from doctor_voice.config import settings
from doctor_voice.core.exceptions import SummarizationError
from doctor_voice.core.logging import get_logger, audit_logger

logger = get_logger(__name__)

MEDICINE_VERIFICATION_WARNING = (
    "⚠️ A medicine was prescribed; name not clearly captured from audio — please verify."
)

SUMMARY_HEADING = "### Assessment & Plan"

SECTION_HEADERS: List[str] = [
    "Chief Complaint",
    "Probable Cause",
    "Medication",
    "Diet Advice",
    "Follow-up",
]

# Bold "**Header:**" lines as requested in the prompt
_HEADER_PATTERN = re.compile(r"^\s*\*\*(?P<name>[^*]+?):?\*\*", re.MULTILINE)

# Indic, Arabic and CJK script blocks the summary must not contain
_NON_LATIN_SCRIPTS: Dict[str, str] = {
    "Arabic": "؀-ۿ",
    "Devanagari": "ऀ-ॿ",
    "Bengali": "ঀ-৿",
    "Gurmukhi": "਀-੿",
    "Gujarati": "઀-૿",
    "Oriya": "଀-୿",
    "Tamil": "஀-௿",
    "Telugu": "ఀ-౿",
    "Kannada": "ಀ-೿",
    "Malayalam": "ഀ-ൿ",
    "CJK": "぀-ヿ㐀-䶿一-鿿가-힯",
}
_SCRIPT_PATTERNS = {
    name: re.compile(f"[{chars}]+") for name, chars in _NON_LATIN_SCRIPTS.items()
}


class LLMService:
    """Service for turning a doctor's transcript into a structured summary."""

    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.openai_client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout,
            max_retries=settings.max_retries,
        )
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens
        self.model = settings.default_llm_model

    async def summarize(self, request_id: str, transcript: str) -> str:
        """
        Sends the summary prompt with the embedded transcript as a single
        request and returns the generated text.
        """
        logger.info(f"[{request_id}] Starting summary with model: {self.model}")
        prompt = self.build_prompt(transcript)
        start_time = time.time()

        try:
            response = await self.openai_client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            summary = response.choices[0].message.content or ""
        except (OpenAIError, IndexError, AttributeError) as e:
            raise SummarizationError(f"Summary generation failed: {e}", cause=e) from e

        audit_logger.log_external_api_call(
            request_id=request_id,
            service="openai.chat.completions",
            model=self.model,
            response_time_ms=int((time.time() - start_time) * 1000),
            characters=len(summary),
        )

        findings = self.inspect_summary(summary)
        if findings["unexpected_sections"] or findings["non_latin_scripts"]:
            logger.warning(f"[{request_id}] Summary deviates from the requested format", **findings)

        logger.info(f"[{request_id}] Summary completed successfully.")
        return summary

    @staticmethod
    def inspect_summary(summary: str) -> Dict[str, List[str]]:
        """
        Reports bold section headers outside the permitted set and the
        names of any non-Latin scripts found in the summary.
        """
        unexpected = [
            match.group("name").strip()
            for match in _HEADER_PATTERN.finditer(summary)
            if match.group("name").strip() not in SECTION_HEADERS
        ]
        scripts = [name for name, pattern in _SCRIPT_PATTERNS.items() if pattern.search(summary)]
        return {"unexpected_sections": unexpected, "non_latin_scripts": scripts}

    @staticmethod
    def build_prompt(transcript: str) -> str:
        """Builds the summary prompt with the raw transcript embedded verbatim"""

        prompt = f"""
You are a clinical assistant. Convert the doctor's spoken instructions (which may be in a mix of Kannada + English or other Indian language + English) into a clean, professional medical summary suitable for a patient's record.

CONSTRAINTS:
- OUTPUT MUST BE IN CLEAR ENGLISH ONLY.
- DO NOT copy slang or raw phonetic Kannada/English words into the summary.
- DO NOT output Kannada, Hindi, Tamil, Telugu, Chinese or any other non-English script in the final summary. English only.
- Convert all spoken content into polished, grammatically correct medical English.
- If a medicine name is clearly and correctly heard (e.g. "Dolo 650", "Amoxicillin"), you may include it.
- If the medicine name is unclear or distorted, DO NOT guess it. Instead write:
  "{MEDICINE_VERIFICATION_WARNING}"
- You may generalize clearly implied medicines as "a stronger painkiller", "an antibiotic", etc., but only if the doctor clearly implies it.
- DO NOT invent new medicines, doses, diagnoses, or causes.
- Only mention causes/suspicions the doctor clearly referred to (e.g. "likely due to street food", "possibly gastritis").
- If the speech is empty or contains no clinical content, say so under Chief Complaint and add nothing else.
- This tool is for drafting; the doctor will always review and edit before use.

Produce output EXACTLY in this structure (in English):

{SUMMARY_HEADING}

**Chief Complaint:**
- (One or two bullet points summarizing the main problem.)

**Probable Cause:**
- (Only if the doctor clearly suggested a likely cause. If not mentioned, omit this entire section.)

**Medication:**
- (List each medicine and dosing instructions as understood. If any medicine name is unclear, use the verification warning.)

**Diet Advice:**
- (Summarize any food / fluid instructions the doctor mentioned. If none, you may omit this section.)

**Follow-up:**
- (Summarize follow-up/review plan only if mentioned.)

Now rewrite the following raw doctor speech into that structure, respecting all rules above:

"{transcript}"
"""
        return prompt
