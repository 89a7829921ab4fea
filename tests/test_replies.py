"""
Tests for outbound reply building.
"""

from leave_intake.replies import MAX_LABEL_LENGTH, MAX_QUICK_REPLY_ITEMS, quick_reply, text_reply


class TestQuickReply:
    def test_options_become_chips(self):
        reply = quick_reply("Which grade?", ["國中", "先修"])

        assert [item.label for item in reply.quick_replies] == ["國中", "先修"]
        assert [item.text for item in reply.quick_replies] == ["國中", "先修"]

    def test_chip_count_is_capped(self):
        reply = quick_reply("Pick", [str(i) for i in range(20)])

        assert len(reply.quick_replies) == MAX_QUICK_REPLY_ITEMS

    def test_long_label_is_truncated_but_text_kept(self):
        option = "An unusually long class name for a chip"
        reply = quick_reply("Pick", [option])

        item = reply.quick_replies[0]
        assert len(item.label) == MAX_LABEL_LENGTH
        assert item.text == option

    def test_line_message_shape(self):
        message = quick_reply("Pick", ["Cancel"]).to_line_message()

        assert message == {
            "type": "text",
            "text": "Pick",
            "quickReply": {
                "items": [
                    {
                        "type": "action",
                        "action": {"type": "message", "label": "Cancel", "text": "Cancel"},
                    }
                ]
            },
        }

    def test_plain_text_has_no_quick_reply(self):
        assert text_reply("Hi").to_line_message() == {"type": "text", "text": "Hi"}
