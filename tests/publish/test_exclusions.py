"""Tests for exclusion rules."""

import pytest

from bucketmirror.publish.exclusions import ExclusionRules


class TestExclusionRules:
    """Tests for ExclusionRules.is_excluded()."""

    def test_empty_excludes_nothing(self) -> None:
        rules = ExclusionRules()
        assert not rules
        assert rules.is_excluded("/com/acme/app.jar") is False

    @pytest.mark.parametrize(
        ("pattern", "path", "excluded"),
        [
            # File name globs
            ("*.md5", "/com/acme/app.jar.md5", True),
            ("*.md5", "/com/acme/app.jar", False),
            ("maven-metadata.xml", "/com/acme/maven-metadata.xml", True),
            # Anchored paths
            ("/com/acme/*", "/com/acme/app.jar", True),
            ("com/acme/*", "/com/acme/app.jar", True),
            ("/org/*", "/com/acme/app.jar", False),
            # ** also matches zero directories
            ("/com/**/*.pom", "/com/app.pom", True),
            ("/com/**/*.pom", "/com/a/b/app.pom", True),
            # Directory patterns
            (".index/", "/.index/data.gz", True),
            (".index/", "/com/.index/data.gz", True),
            (".index/", "/.index", False),
            ("com/acme/", "/com/acme/x/app.jar", True),
            ("com/acme/", "/com/other/app.jar", False),
            # Regular expressions
            ("re:-SNAPSHOT/", "/com/acme/1.0-SNAPSHOT/app.jar", True),
            ("re:^/org/", "/com/org/app.jar", False),
        ],
    )
    def test_patterns(self, pattern: str, path: str, excluded: bool) -> None:
        assert ExclusionRules([pattern]).is_excluded(path) is excluded

    def test_path_without_leading_slash(self) -> None:
        assert ExclusionRules(["/com/*"]).is_excluded("com/a.jar") is True

    def test_blank_patterns_ignored(self) -> None:
        rules = ExclusionRules(["", "  "])
        assert rules.patterns == ()
        assert rules.is_excluded("/a") is False

    def test_equality(self) -> None:
        assert ExclusionRules(["*.md5"]) == ExclusionRules(["*.md5"])
        assert hash(ExclusionRules(["*.md5"])) == hash(ExclusionRules(["*.md5"]))

    def test_deterministic(self) -> None:
        rules = ExclusionRules(["*.sha1", "re:\\.asc$"])
        results = {rules.is_excluded("/a/b.jar.asc") for _ in range(5)}
        assert results == {True}
