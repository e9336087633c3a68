"""Tests for the summary prompt and the chat completion wrapper."""

import asyncio
from types import SimpleNamespace

import httpx
import pytest
from openai import APITimeoutError

from doctor_voice.core.exceptions import SummarizationError
from doctor_voice.services.llm_service import (
    LLMService,
    MEDICINE_VERIFICATION_WARNING,
    SECTION_HEADERS,
    SUMMARY_HEADING,
)


class FakeCompletions:
    def __init__(self, content="### Assessment & Plan", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestBuildPrompt:
    """Tests for LLMService.build_prompt."""

    def test_embeds_transcript_verbatim_at_the_end(self):
        transcript = "jvara ide, Dolo 650 dinakke eradu sala"
        prompt = LLMService.build_prompt(transcript)

        assert prompt.rstrip().endswith(f'"{transcript}"')

    def test_requires_english_only(self):
        prompt = LLMService.build_prompt("text")

        assert "OUTPUT MUST BE IN CLEAR ENGLISH ONLY." in prompt
        assert "English only." in prompt

    def test_forbids_inventions(self):
        prompt = LLMService.build_prompt("text")

        assert "DO NOT invent new medicines, doses, diagnoses, or causes." in prompt

    def test_contains_verification_warning(self):
        prompt = LLMService.build_prompt("text")

        assert MEDICINE_VERIFICATION_WARNING in prompt
        assert "please verify" in MEDICINE_VERIFICATION_WARNING

    def test_lists_sections_in_order(self):
        prompt = LLMService.build_prompt("text")

        assert SUMMARY_HEADING in prompt
        positions = [prompt.index(f"**{header}:**") for header in SECTION_HEADERS]
        assert positions == sorted(positions)


class TestSummarize:
    """Tests for LLMService.summarize."""

    def test_sends_single_deterministic_request(self):
        completions = FakeCompletions(content="### Assessment & Plan\n**Chief Complaint:**\n- Fever")
        service = LLMService(client=make_client(completions))

        summary = asyncio.run(service.summarize("req-1", "fever since two days"))

        assert summary.startswith("### Assessment & Plan")
        assert len(completions.calls) == 1
        call = completions.calls[0]
        assert call["model"] == "gpt-4o"
        assert call["temperature"] == 0.0
        assert len(call["messages"]) == 1
        assert call["messages"][0]["role"] == "user"
        assert call["messages"][0]["content"] == LLMService.build_prompt("fever since two days")

    def test_empty_content_becomes_empty_string(self):
        service = LLMService(client=make_client(FakeCompletions(content=None)))

        assert asyncio.run(service.summarize("req-1", "")) == ""

    def test_api_error_raises_summarization_error(self):
        error = APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        service = LLMService(client=make_client(FakeCompletions(error=error)))

        with pytest.raises(SummarizationError) as exc_info:
            asyncio.run(service.summarize("req-1", "text"))

        assert exc_info.value.stage == "summarization"
        assert exc_info.value.cause is error


class TestInspectSummary:
    """Tests for LLMService.inspect_summary."""

    def test_clean_summary_has_no_findings(self):
        summary = (
            "### Assessment & Plan\n\n"
            "**Chief Complaint:**\n- Fever.\n\n"
            "**Medication:**\n- Dolo 650 twice a day.\n\n"
            "**Follow-up:**\n- Review after three days.\n"
        )

        assert LLMService.inspect_summary(summary) == {
            "unexpected_sections": [],
            "non_latin_scripts": [],
        }

    def test_reports_unexpected_section(self):
        summary = "**Chief Complaint:**\n- Fever.\n\n**Diagnosis:**\n- Typhoid.\n"

        assert LLMService.inspect_summary(summary)["unexpected_sections"] == ["Diagnosis"]

    def test_reports_non_latin_script(self):
        summary = "**Medication:**\n- ಸ್ಟ್ರಾಂಗರ ಪೇಂಕಿಲರ್ಸ್\n- 药\n"

        scripts = LLMService.inspect_summary(summary)["non_latin_scripts"]
        assert "Kannada" in scripts
        assert "CJK" in scripts

    def test_verification_warning_is_not_a_finding(self):
        summary = f"**Medication:**\n- {MEDICINE_VERIFICATION_WARNING}\n"

        assert LLMService.inspect_summary(summary) == {
            "unexpected_sections": [],
            "non_latin_scripts": [],
        }
