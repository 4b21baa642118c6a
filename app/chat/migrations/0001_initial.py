"""
Initial chat schema: messages, unread counters and presence.
"""

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Message",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "content",
                    models.TextField(
                        blank=True,
                        null=True,
                        help_text="Message text (null for GIF messages)",
                    ),
                ),
                (
                    "gif_url",
                    models.URLField(
                        blank=True,
                        max_length=2048,
                        null=True,
                        help_text="GIF URL (null for text messages)",
                    ),
                ),
                (
                    "timestamp",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="Server-assigned creation time",
                    ),
                ),
                (
                    "edited_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="When the content was last edited",
                    ),
                ),
                (
                    "receiver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="received_messages",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User this message was sent to",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sent_messages",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User who sent this message",
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["timestamp", "id"],
                "abstract": False,
                "indexes": [
                    models.Index(
                        fields=["sender", "receiver", "-timestamp"],
                        name="chat_msg_pair_time_idx",
                    ),
                    models.Index(
                        fields=["receiver", "sender", "-timestamp"],
                        name="chat_msg_pair_rev_time_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(content__isnull=False, gif_url__isnull=True),
                            models.Q(content__isnull=True, gif_url__isnull=False),
                            _connector="OR",
                        ),
                        name="chat_message_content_xor_gif",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("sender", models.F("receiver")), _negated=True
                        ),
                        name="chat_message_not_to_self",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UnreadMessageCount",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "message_count",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Messages from sender not yet read by receiver",
                    ),
                ),
                (
                    "is_read",
                    models.BooleanField(
                        default=False,
                        help_text="Receiver has the conversation open and caught up",
                    ),
                ),
                (
                    "receiver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="unread_counts",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User who has not read them yet",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User whose messages are being counted",
                    ),
                ),
            ],
            options={
                "db_table": "chat_unread_message_count",
                "ordering": ["receiver", "sender"],
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(
                        fields=("sender", "receiver"),
                        name="unique_unread_count_pair",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserPresence",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="chat_presence",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                        help_text="User this presence belongs to",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the user is currently online",
                    ),
                ),
                (
                    "status_message",
                    models.CharField(
                        blank=True,
                        default="",
                        max_length=255,
                        help_text="Free-text status shown to other users",
                    ),
                ),
                (
                    "focused_peer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User whose conversation is open (null if none)",
                    ),
                ),
            ],
            options={
                "db_table": "chat_user_presence",
                "ordering": ["user"],
                "verbose_name_plural": "user presence",
                "abstract": False,
            },
        ),
    ]
