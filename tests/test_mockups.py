"""Tests for UI mockup generation and framework detection."""

import json

import pytest

from prdflow.artifacts.mockups import (
    FrameworkDetector,
    FrameworkInfo,
    MockupError,
    find_option,
    generate_mockups,
    load_mockups,
    options_from_draft,
    save_mockups,
)
from prdflow.lib.validate import ValidationError

HTML = FrameworkInfo(framework="html", styling="inline")


def write_package_json(repo, deps=None, dev=None):
    (repo / "package.json").write_text(json.dumps({
        "dependencies": deps or {},
        "devDependencies": dev or {},
    }))


class TestFrameworkDetector:

    def test_empty_repo_falls_back_to_inline(self, tmp_path, caplog):
        caplog.set_level("INFO")
        info = FrameworkDetector().detect(tmp_path)
        assert (info.framework, info.styling) == ("html", "inline")
        assert not info.detected
        assert "falling back to inline styling" in caplog.text

    def test_react_with_tailwind(self, tmp_path):
        write_package_json(tmp_path, deps={"react": "^18"}, dev={"tailwindcss": "^3"})
        info = FrameworkDetector().detect(tmp_path)
        assert (info.framework, info.styling) == ("react", "tailwind")
        assert "package.json:react" in info.signals

    def test_nuxt_maps_to_vue(self, tmp_path):
        write_package_json(tmp_path, deps={"nuxt": "^3", "bootstrap": "^5"})
        info = FrameworkDetector().detect(tmp_path)
        assert (info.framework, info.styling) == ("vue", "bootstrap")

    def test_tailwind_config_file(self, tmp_path):
        (tmp_path / "tailwind.config.js").write_text("module.exports = {}")
        info = FrameworkDetector().detect(tmp_path)
        assert (info.framework, info.styling) == ("html", "tailwind")
        assert info.detected

    def test_unreadable_package_json(self, tmp_path, caplog):
        (tmp_path / "package.json").write_text("{not json")
        info = FrameworkDetector().detect(tmp_path)
        assert info.framework == "html"
        assert "Could not read" in caplog.text


class TestGenerateMockups:

    def test_exactly_three_distinct_options(self):
        options = generate_mockups("profile-editing", "Let users edit their profile", HTML)
        assert [o.letter for o in options] == ["A", "B", "C"]
        assert len({o.layout for o in options}) == 3
        assert len({o.markup for o in options}) == 3

    def test_inline_html_is_self_contained(self):
        option = generate_mockups("profile-editing", "Edit profile", HTML)[0]
        assert option.markup.startswith("<div style=")
        assert "class=" not in option.markup
        assert "Edit profile" in option.markup

    def test_react_tailwind_conventions(self):
        info = FrameworkInfo(framework="react", styling="tailwind")
        option = generate_mockups("profile-editing", "Edit profile", info)[0]
        assert option.markup.startswith("export function ProfileEditingOptionA() {")
        assert 'className="' in option.markup
        assert "<input" in option.markup and "/>" in option.markup
        assert option.framework == "react/tailwind"

    def test_react_inline_uses_style_objects(self):
        info = FrameworkInfo(framework="react", styling="inline")
        option = generate_mockups("profile-editing", "Edit profile", info)[0]
        assert "style={{ maxWidth: '28rem'" in option.markup

    def test_vue_template(self):
        info = FrameworkInfo(framework="vue", styling="bootstrap")
        markup = generate_mockups("profile-editing", "Edit profile", info)[1].markup
        assert markup.startswith("<template>")
        assert markup.endswith("</template>")
        assert 'class="list-group-item"' in markup

    def test_goal_text_is_escaped_in_html(self):
        option = generate_mockups("profile-editing", "Compare a < b & c {x}", HTML)[0]
        assert "Compare a &lt; b &amp; c {x}" in option.markup
        assert "a < b" not in option.markup

    def test_braces_escaped_in_react(self):
        info = FrameworkInfo(framework="react", styling="tailwind")
        option = generate_mockups("profile-editing", "Show {count} <items>", info)[0]
        assert "Show &#123;count&#125; &lt;items&gt;" in option.markup
        assert "{count}" not in option.markup

    def test_vue_interpolation_escaped(self):
        info = FrameworkInfo(framework="vue", styling="inline")
        option = generate_mockups("profile-editing", "Total {{ sum }}", info)[0]
        assert "Total &#123;&#123; sum &#125;&#125;" in option.markup


class TestOptionsFromDraft:

    def _draft(self, letters=("A", "B", "C")):
        return {"options": [
            {"letter": l, "title": f"Option {l}", "summary": "s", "layout": "x", "markup": "<div></div>"}
            for l in letters
        ]}

    def test_converts(self):
        options = options_from_draft(self._draft(), HTML)
        assert [o.framework for o in options] == ["html/inline"] * 3

    def test_wrong_count_rejected_by_schema(self):
        with pytest.raises(ValidationError):
            options_from_draft(self._draft(("A", "B")), HTML)

    def test_duplicate_letters_rejected(self):
        with pytest.raises(MockupError, match="lettered A, B and C"):
            options_from_draft(self._draft(("A", "A", "C")), HTML)


class TestPersistence:

    def test_save_load_with_selection(self, tmp_path):
        options = generate_mockups("profile-editing", "Edit profile", HTML)
        md = tmp_path / "profile-editing-mockups.md"
        save_mockups(options, HTML, "profile-editing", tmp_path, md, selected="B")

        loaded, info, selected = load_mockups(tmp_path)
        assert selected == "B"
        assert info.framework == "html"
        assert loaded[1].markup == options[1].markup
        text = md.read_text()
        assert "## Option B: List and detail (selected)" in text
        assert "```html" in text

    def test_refuses_other_than_three(self, tmp_path):
        options = generate_mockups("x", "g", HTML)[:2]
        with pytest.raises(MockupError, match="exactly 3"):
            save_mockups(options, HTML, "x", tmp_path, tmp_path / "x.md")

    def test_load_missing(self, tmp_path):
        with pytest.raises(MockupError, match="No mockups proposed"):
            load_mockups(tmp_path)

    def test_find_option(self):
        options = generate_mockups("x", "g", HTML)
        assert find_option(options, " c ").letter == "C"
        with pytest.raises(MockupError):
            find_option(options, "D")
