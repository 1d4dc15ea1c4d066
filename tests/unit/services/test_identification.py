"""Tests for the identification stage."""

import json

import pytest

from src.appraiser.services.error_handler import (
    IdentificationIncompleteError,
    IdentificationMalformedError,
    InferenceServiceError,
)
from src.appraiser.services.identification import (
    IDENTIFICATION_PROMPT,
    IdentificationStage,
    identity_from_response,
)


class TestIdentificationStage:
    """IdentificationStage against a mocked inference service."""

    @pytest.fixture
    def stage(self, mock_gemini_service):
        return IdentificationStage(mock_gemini_service)

    @pytest.mark.asyncio
    async def test_identifies_fenced_response(self, stage, mock_gemini_service, identification_text, front_image, back_image):
        mock_gemini_service.generate.return_value = identification_text

        identity = await stage.identify(front_image, back_image)

        assert identity.player == "Luka Doncic"
        assert identity.year == "2018"
        assert identity.set_name == "Panini Prizm"
        assert identity.card_number == "280"
        assert identity.parallel_description == "Silver Prizm"
        assert identity.suggested_grade == 8.5
        assert identity.condition_notes == ["Slightly off-center left to right", "Sharp corners"]

    @pytest.mark.asyncio
    async def test_request_carries_prompt_and_both_images_in_order(self, stage, mock_gemini_service, identification_text, front_image, back_image):
        mock_gemini_service.generate.return_value = identification_text

        await stage.identify(front_image, back_image)

        mock_gemini_service.generate.assert_awaited_once_with(IDENTIFICATION_PROMPT, attachments=[front_image, back_image])

    @pytest.mark.asyncio
    async def test_fenced_and_plain_responses_give_the_same_record(self, stage, mock_gemini_service, identification_payload, front_image, back_image):
        plain = json.dumps(identification_payload)
        mock_gemini_service.generate.side_effect = [plain, f"```\n{plain}\n```"]

        first = await stage.identify(front_image, back_image)
        second = await stage.identify(front_image, back_image)

        assert first == second

    @pytest.mark.asyncio
    async def test_non_json_response_is_malformed(self, stage, mock_gemini_service, front_image, back_image):
        mock_gemini_service.generate.return_value = "This looks like a 2018 Prizm Luka Doncic."

        with pytest.raises(IdentificationMalformedError) as exc_info:
            await stage.identify(front_image, back_image)

        assert "not valid JSON" in exc_info.value.message
        mock_gemini_service.generate.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "text",
        ['{"player": "A", "year": ' + "9" * 5000 + ', "set": "T"}', "[" * 100000],
        ids=["oversized_integer", "deep_nesting"],
    )
    async def test_undecodable_json_is_malformed(self, stage, mock_gemini_service, front_image, back_image, text):
        mock_gemini_service.generate.return_value = text

        with pytest.raises(IdentificationMalformedError):
            await stage.identify(front_image, back_image)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "missing",
        [("player",), ("year",), ("set",), ("player", "year"), ("player", "year", "set")],
    )
    async def test_missing_essentials_is_incomplete(self, stage, mock_gemini_service, identification_payload, front_image, back_image, missing):
        for field in missing:
            identification_payload[field] = None
        mock_gemini_service.generate.return_value = json.dumps(identification_payload)

        with pytest.raises(IdentificationIncompleteError) as exc_info:
            await stage.identify(front_image, back_image)

        assert "essential details" in exc_info.value.message
        assert set(exc_info.value.error_details.details["missing_fields"]) == set(missing)

    @pytest.mark.asyncio
    async def test_empty_player_is_incomplete(self, stage, mock_gemini_service, identification_payload, front_image, back_image):
        identification_payload["player"] = "   "
        mock_gemini_service.generate.return_value = json.dumps(identification_payload)

        with pytest.raises(IdentificationIncompleteError):
            await stage.identify(front_image, back_image)

    @pytest.mark.asyncio
    async def test_service_errors_propagate_unchanged(self, stage, mock_gemini_service, front_image, back_image):
        error = InferenceServiceError()
        mock_gemini_service.generate.side_effect = error

        with pytest.raises(InferenceServiceError) as exc_info:
            await stage.identify(front_image, back_image)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_file_and_captured_images_are_interchangeable(self, stage, mock_gemini_service, identification_text, front_image, sample_frame):
        from src.appraiser.services.camera import capture_still_frame

        class FrameStream:
            def read_frame(self):
                return sample_frame

            def stop(self):
                pass

        captured = capture_still_frame(FrameStream(), "environment")
        mock_gemini_service.generate.return_value = identification_text

        from_files = await stage.identify(front_image, front_image)
        mixed = await stage.identify(captured, front_image)

        assert from_files == mixed


class TestIdentityFromResponse:
    """Mapping decoded answers onto the identity record."""

    def test_absent_fields_are_none_not_empty(self):
        identity = identity_from_response({"player": "Ken Griffey Jr.", "year": "1989", "set": "Upper Deck"})

        assert identity.card_number is None
        assert identity.parallel_description is None
        assert identity.suggested_grade is None
        assert identity.condition_notes is None

    def test_empty_string_stays_empty(self):
        identity = identity_from_response({"player": "A", "year": "1", "set": "S", "cardNumber": ""})
        assert identity.card_number == ""

    def test_numbers_become_text(self):
        identity = identity_from_response({"player": "A", "year": 1989, "set": "S", "cardNumber": 1})
        assert identity.year == "1989"
        assert identity.card_number == "1"

    @pytest.mark.parametrize("grade,expected", [("9", 9.0), (9.5, 9.5), ("Mint", None), (True, None), (None, None)])
    def test_grade_parsing(self, grade, expected):
        identity = identity_from_response({"player": "A", "year": "1", "set": "S", "suggestedGrade": grade})
        assert identity.suggested_grade == expected

    def test_out_of_scale_grade_is_kept(self):
        identity = identity_from_response({"player": "A", "year": "1", "set": "S", "suggestedGrade": 11})
        assert identity.suggested_grade == 11.0

    def test_single_note_becomes_list(self):
        identity = identity_from_response({"player": "A", "year": "1", "set": "S", "conditionNotes": "Soft corners"})
        assert identity.condition_notes == ["Soft corners"]

    def test_long_integers_become_text(self):
        identity = identity_from_response({"player": "A", "year": int("9" * 400), "set": "S", "cardNumber": int("1" * 400)})
        assert identity.year == "9" * 400
        assert identity.card_number == "1" * 400

    def test_overflowing_grade_is_ignored(self):
        identity = identity_from_response({"player": "A", "year": "1", "set": "S", "suggestedGrade": int("9" * 400)})
        assert identity.suggested_grade is None
