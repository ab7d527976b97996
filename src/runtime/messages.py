"""Vietnamese status text builders for playback snapshots."""

from __future__ import annotations

from reader import PlaybackSnapshot, PlaybackState


def playback_status_message(snapshot: PlaybackSnapshot) -> str:
    """Build a status line for the current playback snapshot."""
    title = snapshot.title or "truyện"
    if snapshot.state == PlaybackState.PLAYING:
        return f"Đang đọc: {title}"
    if snapshot.state == PlaybackState.PAUSED:
        return f"Đã tạm dừng: {title}"
    if snapshot.state == PlaybackState.INITIALIZING:
        return "Đang khởi tạo giọng đọc"
    if snapshot.state == PlaybackState.ERROR:
        return "Không thể đọc truyện"
    return "Sẵn sàng"


def progress_message(snapshot: PlaybackSnapshot) -> str:
    """Build a short progress label such as `42%`."""
    return f"{max(0, min(100, snapshot.progress))}%"
