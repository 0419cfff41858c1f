"""Style catalog and prompt construction tests."""

import pytest

from supashots.models.batch import SubjectDescriptor
from supashots.models.shot import Style, SubjectMode
from supashots.services.catalog import (
    HUMAN_QUALITY_SUFFIX,
    HUMAN_STYLES,
    PRODUCT_QUALITY_SUFFIX,
    PRODUCT_STYLES,
    SUBJECT_PLACEHOLDER,
    build_edit_prompt,
    build_prompt,
    get_shot_definition,
    styles_for,
)

SUBJECT = SubjectDescriptor(name="Amber Bottle", description="Amber glass, black cap")


def test_each_mode_has_nine_distinct_styles():
    assert len(styles_for(SubjectMode.PRODUCT)) == 9
    assert len(styles_for(SubjectMode.HUMAN)) == 9
    assert not set(PRODUCT_STYLES) & set(HUMAN_STYLES)
    assert set(PRODUCT_STYLES) | set(HUMAN_STYLES) == set(Style)


def test_catalog_order_starts_with_hero_and_close_up():
    assert styles_for(SubjectMode.PRODUCT)[0] == Style.HERO
    assert styles_for(SubjectMode.HUMAN)[0] == Style.MCU


@pytest.mark.parametrize("style", list(PRODUCT_STYLES))
def test_product_definitions_carry_product_suffix(style):
    definition = get_shot_definition(style)

    assert definition.style == style
    assert definition.label
    assert definition.prompt_template.endswith(PRODUCT_QUALITY_SUFFIX)
    assert SUBJECT_PLACEHOLDER in definition.prompt_template


@pytest.mark.parametrize("style", list(HUMAN_STYLES))
def test_human_definitions_carry_human_suffix(style):
    assert get_shot_definition(style).prompt_template.endswith(HUMAN_QUALITY_SUFFIX)


def test_build_prompt_substitutes_subject():
    prompt = build_prompt(get_shot_definition(Style.HERO), SUBJECT)

    assert SUBJECT_PLACEHOLDER not in prompt
    assert "the same Amber Bottle" in prompt
    assert "SUBJECT VISUAL DETAILS: Amber glass, black cap." in prompt
    assert "ADDITIONAL DIRECTION" not in prompt


def test_build_prompt_appends_custom_instruction():
    prompt = build_prompt(get_shot_definition(Style.HERO), SUBJECT, "on wet slate")

    assert prompt.endswith("ADDITIONAL DIRECTION: on wet slate")


def test_build_edit_prompt_includes_modification_request():
    prompt = build_edit_prompt(get_shot_definition(Style.MACRO), SUBJECT, "show condensation")

    assert "SUBJECT DETAILS: Amber glass, black cap" in prompt
    assert "MODIFICATION REQUEST: show condensation" in prompt
    assert SUBJECT_PLACEHOLDER not in prompt


def test_definitions_are_immutable():
    definition = get_shot_definition(Style.HERO)

    with pytest.raises(AttributeError):
        definition.label = "changed"  # type: ignore[misc]
