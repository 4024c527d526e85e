"""Tests for budget_tracker.parsers.sgml -- OFX tag-soup repair."""

import xml.etree.ElementTree as ET

import pytest

from budget_tracker.parsers.sgml import TagSoupError, repair_tag_soup, split_header


class TestSplitHeader:
    def test_header_and_body(self):
        header, body = split_header("OFXHEADER:100\nDATA:OFXSGML\n\n<OFX><X>1</OFX>")
        assert header == {"OFXHEADER": "100", "DATA": "OFXSGML"}
        assert body == "<OFX><X>1</OFX>"

    def test_root_tag_case_insensitive(self):
        _, body = split_header("VERSION:102\n<ofx><x>1</ofx>")
        assert body.startswith("<ofx>")

    def test_missing_root_raises(self):
        with pytest.raises(TagSoupError):
            split_header("OFXHEADER:100\n<FOO>")


class TestRepairTagSoup:
    """Tests for closing implicit leaf tags."""

    def test_closes_leaves_inside_aggregate(self):
        repaired = repair_tag_soup("<STMTTRN><TRNAMT>-1.00<NAME>CAFE</STMTTRN>")
        assert repaired == "<STMTTRN><TRNAMT>-1.00</TRNAMT><NAME>CAFE</NAME></STMTTRN>"

    def test_soup_and_closed_forms_repair_identically(self):
        soup = "<OFX><STMTTRN><TRNAMT>-1.00<NAME>CAFE</STMTTRN></OFX>"
        closed = (
            "<OFX><STMTTRN><TRNAMT>-1.00</TRNAMT><NAME>CAFE</NAME></STMTTRN></OFX>"
        )
        assert repair_tag_soup(soup) == repair_tag_soup(closed)

    def test_whitespace_between_tags_ignored(self):
        flat = "<OFX><STMTTRN><TRNAMT>-1.00<NAME>CAFE</STMTTRN></OFX>"
        indented = "<OFX>\n  <STMTTRN>\n    <TRNAMT>-1.00\n    <NAME>CAFE\n  </STMTTRN>\n</OFX>\n"
        assert repair_tag_soup(flat) == repair_tag_soup(indented)

    def test_output_is_well_formed(self):
        root = ET.fromstring(repair_tag_soup("<OFX><BANKACCTFROM><ACCTID>42</BANKACCTFROM>"))
        assert root.findtext("BANKACCTFROM/ACCTID") == "42"

    def test_unclosed_tags_closed_at_end(self):
        assert repair_tag_soup("<OFX><STMTTRN><NAME>X") == (
            "<OFX><STMTTRN><NAME>X</NAME></STMTTRN></OFX>"
        )

    def test_tag_names_upper_cased(self):
        assert repair_tag_soup("<ofx><name>x</ofx>") == "<OFX><NAME>x</NAME></OFX>"

    def test_stray_closing_tag_dropped(self):
        assert repair_tag_soup("<OFX><NAME>X</MEMO></OFX>") == "<OFX><NAME>X</NAME></OFX>"

    def test_explicitly_closed_leaf(self):
        assert repair_tag_soup("<OFX><NAME>X</NAME><MEMO>Y</OFX>") == (
            "<OFX><NAME>X</NAME><MEMO>Y</MEMO></OFX>"
        )

    def test_comments_and_declarations_dropped(self):
        repaired = repair_tag_soup("<?xml version='1.0'?><!-- note --><OFX><NAME>X</OFX>")
        assert repaired == "<OFX><NAME>X</NAME></OFX>"

    def test_ampersands_escaped_verbatim(self):
        """Entity references survive XML parsing undecoded."""
        root = ET.fromstring(repair_tag_soup("<OFX><NAME>AT&amp;T & CO</OFX>"))
        assert root.findtext("NAME") == "AT&amp;T & CO"

    def test_unterminated_tag_raises(self):
        with pytest.raises(TagSoupError):
            repair_tag_soup("<OFX><NAME")

    def test_unterminated_comment_raises(self):
        with pytest.raises(TagSoupError):
            repair_tag_soup("<OFX><!-- never closed")

    def test_invalid_tag_name_raises(self):
        with pytest.raises(TagSoupError):
            repair_tag_soup("<OFX><>x</OFX>")
