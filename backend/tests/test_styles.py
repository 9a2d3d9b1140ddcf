"""
Unit tests for the style mapping tables.
"""

import pytest

from psdbridge.models.elements import TextAlign
from psdbridge.services.styles import (
    BLEND_MODE_TO_TARGET,
    blend_mode_to_source,
    blend_mode_to_target,
    font_family_with_fallback,
    map_alignment,
    normalize_rgb,
    parse_css_color,
    resolve_font_flags,
    rgb_to_css,
    split_font_family,
    text_decoration,
)


class TestAlignment:
    """Tests for alignment mapping."""

    def test_canonical_table(self):
        inputs = ["left", "center", "right", "justify", 0, 1, 2, 3, "unknown"]
        expected = ["left", "center", "right", "justify", "left", "center", "right", "justify", "left"]

        assert [map_alignment(v).value for v in inputs] == expected

    def test_case_insensitive(self):
        assert map_alignment("CENTER") == TextAlign.CENTER
        assert map_alignment(" Right ") == TextAlign.RIGHT

    @pytest.mark.parametrize("value", [None, 7, -1, 1.5, True, object()])
    def test_unknown_defaults_to_left(self, value):
        assert map_alignment(value) == TextAlign.LEFT

    def test_enum_passthrough(self):
        assert map_alignment(TextAlign.JUSTIFY) == TextAlign.JUSTIFY


class TestBlendModes:
    """Tests for blend mode mapping."""

    def test_round_trip(self):
        target = blend_mode_to_target("softLight")

        assert target == "soft-light"
        assert blend_mode_to_target(blend_mode_to_source(target)) == "soft-light"

    def test_all_pairs_round_trip(self):
        for source, target in BLEND_MODE_TO_TARGET.items():
            assert blend_mode_to_source(target) == source

    @pytest.mark.parametrize("value", ["dissolve", "passThrough", "", None])
    def test_unmapped_to_target(self, value):
        assert blend_mode_to_target(value) == "normal"

    @pytest.mark.parametrize("value", ["hue", "luminosity", "softLight", None])
    def test_unmapped_to_source(self, value):
        assert blend_mode_to_source(value) == "normal"


class TestColors:
    """Tests for color normalization."""

    def test_unit_range_scaled(self):
        assert rgb_to_css((1.0, 0.5, 0.0)) == "rgb(255,128,0)"

    def test_byte_range_kept(self):
        assert rgb_to_css((255, 128, 0)) == "rgb(255,128,0)"

    def test_mixed_range_treated_as_bytes(self):
        assert normalize_rgb((1, 200, 0)) == (1, 200, 0)

    def test_out_of_range_clamped(self):
        assert normalize_rgb((300, -5, 10.6)) == (255, 0, 11)

    def test_missing_color_is_black(self):
        assert rgb_to_css(None) == "rgb(0,0,0)"
        assert rgb_to_css((1, 1)) == "rgb(0,0,0)"

    def test_parse_css_color(self):
        assert parse_css_color("#ff0000") == (255, 0, 0)
        assert parse_css_color("rgb(1,2,3)") == (1, 2, 3)
        assert parse_css_color("white") == (255, 255, 255)

    def test_parse_css_color_fallback(self):
        assert parse_css_color("not-a-color") == (0, 0, 0)
        assert parse_css_color(None, default=(1, 1, 1)) == (1, 1, 1)


class TestFonts:
    """Tests for font family chains and flags."""

    def test_known_font(self):
        assert font_family_with_fallback("Helvetica Neue") == (
            '"Helvetica Neue", Helvetica Neue, Helvetica, Arial, sans-serif'
        )

    def test_cjk_font(self):
        assert font_family_with_fallback("微软雅黑").startswith('"微软雅黑", Microsoft YaHei')

    def test_missing_font(self):
        assert font_family_with_fallback(None) == "Arial, sans-serif"

    @pytest.mark.parametrize("name,generic", [
        ("Fira Code", "monospace"),
        ("Roboto Mono", "monospace"),
        ("Noto Serif", "serif"),
        ("Brush Script MT", "cursive"),
        ("Bebas Display", "fantasy"),
        ("Open Sans", "sans-serif"),
    ])
    def test_generic_fallbacks(self, name, generic):
        chain = font_family_with_fallback(name)

        assert chain.startswith(f'"{name}", ')
        assert chain.endswith(generic)

    def test_split_font_family(self):
        names = split_font_family('"Helvetica Neue", Helvetica Neue, Helvetica, Arial, sans-serif')

        assert names == ["Helvetica Neue", "Helvetica", "Arial"]

    def test_split_drops_system_aliases(self):
        assert split_font_family('"SF Pro Display", -apple-system, BlinkMacSystemFont, sans-serif') == [
            "SF Pro Display",
            "BlinkMacSystemFont",
        ]

    def test_flags_from_name(self):
        assert resolve_font_flags("Arial-BoldItalic") == (True, True)
        assert resolve_font_flags("Helvetica Oblique") == (False, True)
        assert resolve_font_flags("Arial") == (False, False)

    def test_explicit_flags_win(self):
        assert resolve_font_flags("Arial-Bold", faux_bold=False) == (False, False)
        assert resolve_font_flags("Arial", faux_bold=True, faux_italic=True) == (True, True)

    def test_text_decoration(self):
        assert text_decoration(True, True) == "underline line-through"
        assert text_decoration(False, None) == ""
