"""
Unit tests for QuestionGenerator and step resolution.
"""

import pytest

from lingo_engine.middleware.error_handling import ConfigurationError
from lingo_engine.services.learning.interactions.true_false import TrueFalseQuestion
from lingo_engine.services.learning.question_generator import QuestionGenerator, resolve_step
from tests.conftest import MC_GENERATION, MULTIPLE_CHOICE_QUESTION, TRUE_FALSE_QUESTION


@pytest.fixture
def question_generator(catalog, schema_registry, generation_service) -> QuestionGenerator:
    return QuestionGenerator(catalog, schema_registry, generation_service)


class TestResolveStep:
    def test_schema_default_ui_component(self, catalog, schema_registry):
        resolved = resolve_step(
            catalog, schema_registry, "present-tense", "regular-verbs", "multiple-choice"
        )

        assert resolved.step.ui_component == "ReadingMultipleChoice"
        assert resolved.step.submodule_title == "Regular verbs"

    def test_ui_component_override(self, catalog, schema_registry):
        resolved = resolve_step(
            catalog, schema_registry, "present-tense", "irregular-verbs", "true-false"
        )

        assert resolved.step.ui_component == "CompactTrueFalse"

    def test_localized_submodule_title(self, catalog, schema_registry):
        resolved = resolve_step(
            catalog, schema_registry, "present-tense", "regular-verbs", "fill-in-gap", language="de"
        )

        assert resolved.step.submodule_title == "Regelmäßige Verben"

    @pytest.mark.parametrize(
        "module_id,submodule_id,schema_id",
        [
            ("cooking", "regular-verbs", "multiple-choice"),
            ("present-tense", "modal-verbs", "multiple-choice"),
            ("present-tense", "regular-verbs", "crossword"),
            ("present-tense", "regular-verbs", "true-false"),
        ],
    )
    def test_unresolvable_steps(self, catalog, schema_registry, module_id, submodule_id, schema_id):
        with pytest.raises(ConfigurationError):
            resolve_step(catalog, schema_registry, module_id, submodule_id, schema_id)


class TestGenerateQuestion:
    @pytest.mark.asyncio
    async def test_successful_generation(self, question_generator, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)

        result = await question_generator.generate_question(
            "present-tense", "regular-verbs", "multiple-choice", "de", "en", difficulty="beginner"
        )

        assert result.success is True
        assert result.question_data == MULTIPLE_CHOICE_QUESTION
        assert result.step.submodule_id == "regular-verbs"
        assert result.step.modal_schema_id == "multiple-choice"
        assert result.step.submodule_title == "Regelmäßige Verben"

        call = generator.calls[0]
        assert call.label == MC_GENERATION
        assert "German" in call.prompt
        assert "beginner" in call.prompt
        assert "Conjugate regular verbs" in call.prompt

    @pytest.mark.asyncio
    async def test_uses_schema_generation_contract(self, question_generator, generator):
        generator.script("true-false:generation", TRUE_FALSE_QUESTION)

        result = await question_generator.generate_question(
            "present-tense", "irregular-verbs", "true-false", "de", "en"
        )

        assert generator.calls[0].contract is TrueFalseQuestion
        assert result.step.ui_component == "CompactTrueFalse"

    @pytest.mark.asyncio
    async def test_default_difficulty(self, question_generator, generator):
        generator.script(MC_GENERATION, MULTIPLE_CHOICE_QUESTION)

        await question_generator.generate_question(
            "present-tense", "regular-verbs", "multiple-choice", "de", "en"
        )

        assert "intermediate" in generator.calls[0].prompt

    @pytest.mark.asyncio
    async def test_generation_failure_is_a_result(self, question_generator, generator):
        generator.script(MC_GENERATION, "not json at all {")

        result = await question_generator.generate_question(
            "present-tense", "regular-verbs", "multiple-choice", "de", "en"
        )

        assert result.success is False
        assert result.question_data is None
        assert result.generation.attempts == 2
        assert result.step.modal_schema_id == "multiple-choice"

    @pytest.mark.asyncio
    async def test_unsupported_pair_raises_before_generation(self, question_generator, generator):
        with pytest.raises(ConfigurationError):
            await question_generator.generate_question(
                "present-tense", "regular-verbs", "speaking-conversation", "de", "en"
            )

        assert generator.calls == []
