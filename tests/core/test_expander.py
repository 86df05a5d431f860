"""Tests for MIME type expansion and prioritization."""

from openwith.core.config import Settings
from openwith.core.detector import RawMimeProfile
from openwith.core.expander import expand_mime_types

OCTET = "application/octet-stream"


def regular(**signals) -> RawMimeProfile:
    return RawMimeProfile(is_regular_file=True, **signals)


class TestExpandMimeTypes:
    def test_signals_in_priority_order(self):
        profile = regular(xdg_mime="text/x-python", file_mime="text/plain", ext_mime="text/x-python")
        settings = Settings(use_generic_mime_fallbacks=False, show_universal_handlers=False)
        assert expand_mime_types(profile, settings) == ["text/x-python", "text/plain"]

    def test_generic_fallbacks(self):
        profile = regular(xdg_mime="text/x-csrc")
        settings = Settings(show_universal_handlers=False)
        assert expand_mime_types(profile, settings) == ["text/x-csrc", "text/plain", "text/*"]

    def test_octet_stream_always_last(self):
        profile = regular(xdg_mime=OCTET, file_mime="image/png")
        settings = Settings(show_universal_handlers=False)
        assert expand_mime_types(profile, settings) == ["image/png", "image/*", OCTET]

    def test_universal_handler_added_for_regular_files(self):
        assert expand_mime_types(regular(ext_mime="image/png"), Settings())[-1] == OCTET

    def test_no_universal_handler_for_directories(self):
        profile = RawMimeProfile(stat_mime="inode/directory")
        assert expand_mime_types(profile, Settings()) == ["inode/directory", "inode/*"]

    def test_values_trimmed_and_malformed_dropped(self):
        profile = regular(xdg_mime="  image/png \n", file_mime="garbage")
        settings = Settings(use_generic_mime_fallbacks=False, show_universal_handlers=False)
        assert expand_mime_types(profile, settings) == ["image/png"]

    def test_empty_profile(self):
        assert expand_mime_types(RawMimeProfile(), Settings()) == []

    def test_aliases_both_directions(self):
        aliases = {"image/x-icon": "image/vnd.microsoft.icon", "text/ico": "image/vnd.microsoft.icon"}
        reverse = {"image/vnd.microsoft.icon": ["image/x-icon"]}
        settings = Settings(use_generic_mime_fallbacks=False, show_universal_handlers=False)

        forward = expand_mime_types(regular(xdg_mime="image/x-icon"), settings, aliases, reverse)
        assert forward == ["image/x-icon", "image/vnd.microsoft.icon"]

        backward = expand_mime_types(
            regular(xdg_mime="image/vnd.microsoft.icon"), settings, aliases, reverse
        )
        assert backward == ["image/vnd.microsoft.icon", "image/x-icon"]

    def test_subclass_chain(self):
        subclasses = {
            "application/x-shellscript": "application/x-executable",
            "application/x-executable": "application/octet-stream",
        }
        settings = Settings(use_generic_mime_fallbacks=False, show_universal_handlers=False)
        result = expand_mime_types(
            regular(xdg_mime="application/x-shellscript"), settings, subclasses=subclasses
        )
        assert result == ["application/x-shellscript", "application/x-executable", OCTET]

    def test_structured_suffix(self):
        profile = regular(xdg_mime="image/svg+xml")
        settings = Settings(use_generic_mime_fallbacks=False, show_universal_handlers=False)
        assert expand_mime_types(profile, settings) == ["image/svg+xml", "application/xml"]

    def test_structured_suffix_disabled(self):
        profile = regular(xdg_mime="image/svg+xml")
        settings = Settings(
            resolve_structured_suffixes=False,
            use_generic_mime_fallbacks=False,
            show_universal_handlers=False,
        )
        assert expand_mime_types(profile, settings) == ["image/svg+xml"]

    def test_full_chain_order(self):
        subclasses = {"image/svg+xml": "application/xml", "application/xml": "text/plain"}
        result = expand_mime_types(regular(xdg_mime="image/svg+xml"), Settings(), subclasses=subclasses)
        assert result == [
            "image/svg+xml",
            "application/xml",
            "text/plain",
            "image/*",
            "application/*",
            "text/*",
            OCTET,
        ]

    def test_no_duplicates(self):
        profile = regular(xdg_mime="text/plain", file_mime="text/plain", ext_mime="text/plain")
        result = expand_mime_types(profile, Settings())
        assert len(result) == len(set(result))
