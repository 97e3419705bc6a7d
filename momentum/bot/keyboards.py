"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from momentum.db.models import Conflict, SmartReminder
from momentum.utils.constants import SNOOZE_OPTIONS


def reminder_actions_keyboard(reminder: SmartReminder) -> InlineKeyboardMarkup:
    """Keyboard for a reminder: Done, Snooze options, Later, Pause, Lock."""
    rid = reminder.id
    rows = [
        [
            InlineKeyboardButton("✓ Done", callback_data=f"r:done:{rid}"),
            InlineKeyboardButton("Later today", callback_data=f"r:later:{rid}"),
        ],
        [
            InlineKeyboardButton(f"{m}m", callback_data=f"r:snooze:{rid}:{m}")
            for m in SNOOZE_OPTIONS
        ],
        [
            InlineKeyboardButton("⏸ Tomorrow", callback_data=f"r:pause:{rid}"),
            InlineKeyboardButton("✗ Ignore", callback_data=f"r:ignore:{rid}"),
            InlineKeyboardButton(
                "🔓 Unlock" if reminder.is_locked else "🔒 Lock",
                callback_data=f"r:toggle_lock:{rid}",
            ),
        ],
    ]

    if reminder.is_exploratory and reminder.original_offset_minutes is not None:
        rows.append(
            [
                InlineKeyboardButton(
                    "↩ Revert experiment", callback_data=f"r:revert_exploration:{rid}"
                )
            ]
        )

    return InlineKeyboardMarkup(rows)


def conflict_keyboard(conflict: Conflict) -> InlineKeyboardMarkup:
    """Resolution choices for a move conflict."""
    if conflict.kind == "dnd":
        return InlineKeyboardMarkup(
            [
                [
                    InlineKeyboardButton("Yes, shift", callback_data="c:shift_dnd"),
                    InlineKeyboardButton("Cancel", callback_data="c:cancel"),
                ]
            ]
        )

    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("Shift to avoid", callback_data="c:shift_overlap"),
                InlineKeyboardButton("Keep overlap", callback_data="c:keep_overlap"),
            ],
            [InlineKeyboardButton("Cancel", callback_data="c:cancel")],
        ]
    )


def confirm_cancel_keyboard(action: str) -> InlineKeyboardMarkup:
    """Keyboard for confirmations: Confirm, Cancel."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Confirm", callback_data=f"confirm:{action}"),
                InlineKeyboardButton("✗ Cancel", callback_data=f"cancel:{action}"),
            ]
        ]
    )
