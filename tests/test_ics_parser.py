"""Unit tests for IcsParser."""
from datetime import datetime, timezone

from feeds.ics_parser import IcsParser
from ics_helpers import make_ics, vevent


class TestIcsParser:
    """Test cases for IcsParser class."""

    def test_parse_single_event(self):
        """Test that a complete VEVENT yields one event with its fields."""
        text = make_ics(vevent(
            'uid-1', 'Team Standup', '20240131T143000Z', '20240131T150000Z',
            extra='DESCRIPTION:Daily check-in\r\nLOCATION:Room 4\r\n'
        ))

        events = IcsParser().parse(text)

        assert len(events) == 1
        event = events[0]
        assert event.id == 'uid-1'
        assert event.title == 'Team Standup'
        assert event.start_time == datetime(2024, 1, 31, 14, 30, tzinfo=timezone.utc)
        assert event.end_time == datetime(2024, 1, 31, 15, 0, tzinfo=timezone.utc)
        assert event.description == 'Daily check-in'
        assert event.location == 'Room 4'
        assert event.attendee_count == 0

    def test_missing_required_fields_drop_event(self):
        """Test that blocks without title, start or end are skipped."""
        text = make_ics(
            vevent('no-title', None, '20240131T143000Z', '20240131T150000Z'),
            vevent('no-start', 'Review', None, '20240131T150000Z'),
            vevent('no-end', 'Review', '20240131T143000Z', None),
            vevent('ok', 'Review', '20240131T143000Z', '20240131T150000Z'),
        )

        events = IcsParser().parse(text)

        assert [event.id for event in events] == ['ok']

    def test_empty_title_drops_event(self):
        text = make_ics(vevent('empty', '', '20240131T143000Z', '20240131T150000Z'))
        assert IcsParser().parse(text) == []

    def test_empty_feed(self):
        """Test that empty text yields no events."""
        assert IcsParser().parse('') == []
        assert IcsParser().parse(None) == []

    def test_unterminated_event_is_dropped(self):
        """Test that a BEGIN:VEVENT without END:VEVENT yields nothing."""
        text = (
            make_ics(vevent('first', 'Planning', '20240131T143000Z', '20240131T150000Z'))
            + "BEGIN:VEVENT\r\nUID:second\r\nSUMMARY:Truncated\r\n"
            "DTSTART:20240201T090000Z\r\nDTEND:20240201T100000Z\r\n"
        )

        events = IcsParser().parse(text)

        assert [event.id for event in events] == ['first']

    def test_folded_summary_matches_single_line(self):
        """Test that a continuation line is joined after one space."""
        folded = (
            "BEGIN:VEVENT\r\nUID:f\r\nSUMMARY:Quarterly planning\r\n  with finance\r\n"
            "DTSTART:20240131T143000Z\r\nDTEND:20240131T150000Z\r\nEND:VEVENT\r\n"
        )
        single = (
            "BEGIN:VEVENT\r\nUID:f\r\nSUMMARY:Quarterly planning with finance\r\n"
            "DTSTART:20240131T143000Z\r\nDTEND:20240131T150000Z\r\nEND:VEVENT\r\n"
        )

        parser = IcsParser()

        assert parser.parse(folded)[0].title == parser.parse(single)[0].title
        assert parser.parse(folded)[0].title == 'Quarterly planning with finance'

    def test_tab_continuation(self):
        lines = IcsParser().unfold_lines("DESCRIPTION:first\n\tsecond\nUID:x")
        assert lines == ['DESCRIPTION:firstsecond', 'UID:x']

    def test_unescape_text(self):
        """Test backslash escapes in text values."""
        text = make_ics(vevent(
            'esc', r'A\, B\; C\\D\nE', '20240131T143000Z', '20240131T150000Z'
        ))

        events = IcsParser().parse(text)

        assert events[0].title == 'A, B; C\\D\nE'

    def test_escaped_backslash_before_n_is_not_newline(self):
        assert IcsParser.unescape_text(r'C:\\new') == 'C:\\new'

    def test_parse_utc_datetime(self):
        assert IcsParser.parse_date('20240131T143000Z') == datetime(
            2024, 1, 31, 14, 30, 0, tzinfo=timezone.utc
        )

    def test_parse_datetime_without_z_is_read_as_utc(self):
        assert IcsParser.parse_date('20240131T143000') == datetime(
            2024, 1, 31, 14, 30, 0, tzinfo=timezone.utc
        )

    def test_parse_date_only_is_local_midnight(self):
        """Test that all-day values decode to local midnight."""
        value = IcsParser.parse_date('20240131')

        assert value == datetime(2024, 1, 31).astimezone()
        local = value.astimezone()
        assert (local.year, local.month, local.day, local.hour, local.minute) == (2024, 1, 31, 0, 0)

    def test_parse_invalid_date(self):
        assert IcsParser.parse_date('2024') is None
        assert IcsParser.parse_date('20241345T990000Z') is None

    def test_dtstart_with_parameters(self):
        """Test that parameters before the colon are tolerated."""
        text = make_ics(
            "UID:tz\r\nSUMMARY:Offsite\r\n"
            "DTSTART;TZID=America/New_York:20240131T090000\r\n"
            "DTEND;TZID=America/New_York:20240131T100000\r\n",
            "UID:allday\r\nSUMMARY:Holiday\r\n"
            "DTSTART;VALUE=DATE:20240201\r\nDTEND;VALUE=DATE:20240202\r\n",
        )

        events = IcsParser().parse(text)

        assert len(events) == 2
        assert events[0].start_time == datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
        assert events[1].start_time == datetime(2024, 2, 1).astimezone()

    def test_summary_value_with_colon(self):
        text = make_ics(vevent('c', 'Re: budget', '20240131T143000Z', '20240131T150000Z'))
        assert IcsParser().parse(text)[0].title == 'Re: budget'

    def test_unknown_properties_ignored(self):
        text = make_ics(vevent(
            'u', 'Design review', '20240131T143000Z', '20240131T150000Z',
            extra='X-MICROSOFT-CDO-BUSYSTATUS:BUSY\r\nRRULE:FREQ=WEEKLY\r\nSTATUS:CONFIRMED\r\n'
        ))

        events = IcsParser().parse(text)

        assert len(events) == 1
        assert events[0].description is None

    def test_alarm_properties_do_not_leak_into_event(self):
        text = make_ics(vevent(
            'alarm', 'Board meeting', '20240131T143000Z', '20240131T150000Z',
            extra=(
                'DESCRIPTION:Quarterly numbers\r\n'
                'BEGIN:VALARM\r\nACTION:DISPLAY\r\nDESCRIPTION:Reminder\r\n'
                'TRIGGER:-PT15M\r\nEND:VALARM\r\n'
            )
        ))

        events = IcsParser().parse(text)

        assert events[0].description == 'Quarterly numbers'

    def test_attendees_are_counted(self):
        text = make_ics(vevent(
            'a', 'Sync', '20240131T143000Z', '20240131T150000Z',
            extra=(
                'ATTENDEE;CN=Ann:mailto:ann@example.com\r\n'
                'ATTENDEE;CN=Bob:mailto:bob@example.com\r\n'
            )
        ))

        assert IcsParser().parse(text)[0].attendee_count == 2

    def test_equal_start_and_end_is_kept(self):
        text = make_ics(vevent('z', 'Reminder', '20240131T143000Z', '20240131T143000Z'))
        events = IcsParser().parse(text)
        assert events[0].start_time == events[0].end_time

    def test_missing_uid_generates_unique_ids(self):
        """Test that events without UID get distinct synthesized ids."""
        text = make_ics(*[
            vevent(None, f'Event {i}', '20240131T143000Z', '20240131T150000Z')
            for i in range(5)
        ])

        events = IcsParser().parse(text)

        ids = [event.id for event in events]
        assert len(ids) == 5
        assert len(set(ids)) == 5
        assert all(event_id.startswith('generated-') for event_id in ids)

    def test_repeated_uid_is_made_unique(self):
        """Test that recurrence overrides sharing a UID keep distinct ids."""
        text = make_ics(
            vevent('series', 'Weekly sync', '20240131T143000Z', '20240131T150000Z'),
            vevent('series', 'Weekly sync (moved)', '20240207T160000Z', '20240207T163000Z'),
        )

        events = IcsParser().parse(text)

        assert events[0].id == 'series'
        assert events[1].id == 'series@20240207T160000'

    def test_bare_lf_line_endings(self):
        text = make_ics(vevent('lf', 'Lunch', '20240131T120000Z', '20240131T130000Z')).replace('\r\n', '\n')
        assert len(IcsParser().parse(text)) == 1

    def test_parse_extended_datetime(self):
        assert IcsParser.parse_date('2024-01-31T14:30:00Z') == datetime(
            2024, 1, 31, 14, 30, 0, tzinfo=timezone.utc
        )
        assert IcsParser.parse_date('2024-01-31') == datetime(2024, 1, 31).astimezone()

    def test_extended_forms_in_feed(self):
        text = make_ics(vevent('ext', 'Retro', '2024-01-31T14:30:00Z', '2024-01-31T15:00:00Z'))

        events = IcsParser().parse(text)

        assert events[0].end_time == datetime(2024, 1, 31, 15, 0, tzinfo=timezone.utc)

    def test_end_before_start_drops_event(self):
        text = make_ics(
            vevent('backwards', 'Retro', '20240131T150000Z', '20240131T143000Z'),
            vevent('ok', 'Retro', '20240131T143000Z', '20240131T150000Z'),
        )

        events = IcsParser().parse(text)

        assert [event.id for event in events] == ['ok']
