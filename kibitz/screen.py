"""Frame composition for the terminal UI.

``render_frame`` is presentation only: it reads ``AppState`` and returns one
string with cursor positioning, so a redraw is a single write. The diff pane
shows printer output verbatim, clipped to the pane width.
"""

from __future__ import annotations

from .ansi import clip_ansi_line, display_width
from .change_tree import FileNode, FileStatus, FolderNode, HorizontalItem, HorizontalRow, VisibleNode
from .keybindings import grouped_keybindings
from .runtime.session import tree_pane_height, tree_pane_width
from .state import AppState
from .theme import ColorConfig

STATUS_HINTS = "j/k files  J/K hunks  s staged  [/] history  ? help  q quit"
EMPTY_TREE_TEXT = "No changes"
CLEAN_TEXT = "Nothing to show: working tree clean"
LOADING_TEXT = "Loading..."
SCROLLBAR_THUMB = "█"
HORIZONTAL_ITEM_GAP = "  "


def selected_with_ansi(text: str, colors: ColorConfig) -> str:
    """Apply selection styling without discarding existing ANSI colors."""
    if not text or not colors.reverse:
        return text
    # Keep reverse video active even when the text contains internal resets.
    return colors.reverse + text.replace("\033[0m", f"\033[0m{colors.reverse}") + colors.reset


def _pad(text: str, width: int) -> str:
    clipped = clip_ansi_line(text, width)
    return clipped + " " * max(0, width - display_width(clipped))


def _status_color(status: FileStatus, colors: ColorConfig) -> str:
    if status is FileStatus.ADDED:
        return colors.success
    if status is FileStatus.DELETED:
        return colors.error
    if status is FileStatus.RENAMED:
        return colors.info
    if status is FileStatus.UNTRACKED:
        return colors.text_muted
    return colors.warning


def format_tree_row(entry: VisibleNode, colors: ColorConfig) -> str:
    indent = "  " * entry.depth
    node = entry.node
    if isinstance(node, FolderNode):
        icon = "▼" if node.expanded else "▶"
        return f"{indent}{colors.accent}{icon} {node.name}/{colors.reset}"
    assert isinstance(node, FileNode)
    color = _status_color(node.status, colors)
    return f"{indent}{color}{node.status.value}{colors.reset} {colors.text}{node.name}{colors.reset}"


def _tree_rows(state: AppState, width: int, rows: int, colors: ColorConfig) -> list[str]:
    entries = list(state.tree.flatten())
    if not entries:
        return [_pad(f"{colors.text_muted}{EMPTY_TREE_TEXT}{colors.reset}", width)] + [" " * width] * (rows - 1)

    selected = -1
    for index, entry in enumerate(entries):
        if entry.path == state.selected_path:
            selected = index
            break
    # Keep the cursor row inside the window.
    if selected >= 0:
        if selected < state.tree_start:
            state.tree_start = selected
        elif selected >= state.tree_start + rows:
            state.tree_start = selected - rows + 1
    state.tree_start = max(0, min(state.tree_start, max(0, len(entries) - rows)))

    out: list[str] = []
    for index in range(state.tree_start, state.tree_start + rows):
        if index >= len(entries):
            out.append(" " * width)
            continue
        row = _pad(format_tree_row(entries[index], colors), width)
        out.append(selected_with_ansi(row, colors) if index == selected else row)
    return out


def build_title(state: AppState, colors: ColorConfig) -> str:
    commit = state.tree_commit
    if commit is not None:
        return f"{colors.accent}{colors.bold} {commit.short_oid}: {commit.summary} {colors.reset}"
    node = state.tree.find(state.selected_path) if state.selected_path else None
    if isinstance(node, FileNode) and node.status is FileStatus.MIXED:
        return f"{colors.accent}{colors.bold} Diff ({state.mode.value}) [s to toggle] {colors.reset}"
    label = state.selected_path or ""
    if isinstance(node, FileNode) and node.renamed_from:
        label = f"{node.renamed_from} → {node.path}"
    return f"{colors.accent}{colors.bold} {label} {colors.reset}" if label else ""


def _diff_rows(state: AppState, rows: int, colors: ColorConfig) -> list[str]:
    document = state.document
    if document is None:
        if state.render_pending:
            return [f"{colors.text_muted}{LOADING_TEXT}{colors.reset}"]
        if state.tree.is_empty():
            return [f"{colors.text_muted}{CLEAN_TEXT}{colors.reset}"]
        return []
    if document.error is not None:
        return [f"{colors.error}{line}{colors.reset}" for line in document.error.splitlines()]
    start, end = state.viewport.visible_range()
    out = list(document.lines[start:end])[:rows]
    # Headers scrolled off the top are drawn over the first rows.
    for row, line_index in enumerate(document.sticky_rows(start)):
        if row >= len(out):
            break
        out[row] = document.lines[line_index]
    return out


def scrollbar_row(total_lines: int, offset: int, rows: int) -> int | None:
    """Row of the scrollbar thumb, or ``None`` when everything fits."""
    if rows <= 0 or total_lines <= rows:
        return None
    return min(rows - 1, offset * rows // total_lines)


def format_horizontal_item(item: HorizontalItem, colors: ColorConfig) -> str:
    node = item.node
    if isinstance(node, FolderNode):
        icon = ""
        name = f"{node.name}/"
    else:
        icon = f"{_status_color(node.status, colors)}{node.status.value}{colors.reset} "
        name = node.name
    if item.selected:
        return f"{icon}{colors.reverse}{colors.bold}{name}{colors.reset}"
    if item.on_path:
        return f"{icon}{colors.accent}{colors.bold}{colors.underline}{name}{colors.reset}"
    if isinstance(node, FolderNode):
        return f"{icon}{colors.accent}{colors.dim}{name}{colors.reset}"
    return f"{icon}{colors.dim}{name}{colors.reset}"


def format_horizontal_row(row: HorizontalRow, width: int, colors: ColorConfig) -> str:
    """Join a row's items, dropping leading items until the active one fits."""
    parts = [format_horizontal_item(item, colors) for item in row.items]
    widths = [display_width(part) for part in parts]
    gap = len(HORIZONTAL_ITEM_GAP)
    first = 0
    active = row.active_index
    while first < active and sum(widths[first : active + 1]) + gap * (active - first) > width:
        first += 1
    return clip_ansi_line(HORIZONTAL_ITEM_GAP.join(parts[first:]), width)


def _horizontal_tree_rows(state: AppState, width: int, height: int, colors: ColorConfig) -> list[str]:
    commit = state.tree_commit
    label = f" {commit.short_oid} " if commit is not None else " Files "
    title = f"{colors.text_muted}─{label}{'─' * max(0, width - len(label) - 1)}{colors.reset}"
    rows = state.tree.horizontal_rows(state.selected_path)
    if not rows:
        return [title, f"{colors.text_muted}{EMPTY_TREE_TEXT}{colors.reset}"][:height]
    capacity = max(0, height - 1)
    selected_row = next(
        (index for index, row in enumerate(rows) if any(item.selected for item in row.items)),
        0,
    )
    start = max(0, min(selected_row, len(rows) - capacity))
    return [title] + [format_horizontal_row(row, width, colors) for row in rows[start : start + capacity]]


def build_status_line(left_text: str, width: int, right_text: str) -> str:
    usable = max(1, width - 1)
    if usable <= len(right_text):
        return right_text[-usable:]
    left_limit = max(0, usable - len(right_text) - 1)
    left = left_text[:left_limit]
    gap = " " * (usable - len(left) - len(right_text))
    return f"{left}{gap}{right_text}"


def _status_row(state: AppState, colors: ColorConfig) -> str:
    viewport = state.viewport
    right = f"Hunk {viewport.current_hunk + 1}/{viewport.hunk_count}  {viewport.percent():>3}%"
    depth = state.navigator.depth
    if depth:
        ref = "HEAD" if depth == 1 else f"HEAD~{depth - 1}"
        right = f"{ref}  {right}"
    banner = state.banner
    left = banner if banner else STATUS_HINTS
    line = build_status_line(left, state.width, right)
    if banner:
        cut = min(len(line), len(banner))
        return f"{colors.error}{line[:cut]}{colors.reset}{colors.text_muted}{line[cut:]}{colors.reset}"
    return f"{colors.text_muted}{line}{colors.reset}"


def _help_overlay(state: AppState, colors: ColorConfig) -> str:
    lines: list[str] = [f"{colors.accent}{colors.bold}Keybindings{colors.reset}", ""]
    for category, bindings in grouped_keybindings():
        lines.append(f"{colors.accent}{category}{colors.reset}")
        key_width = max(len(binding.keys) for binding in bindings)
        for binding in bindings:
            lines.append(f"  {colors.warning}{binding.keys.ljust(key_width)}{colors.reset}  {binding.description}")
        lines.append("")
    lines.append(f"{colors.text_muted}press any key to close{colors.reset}")

    box_width = min(state.width, max(display_width(line) for line in lines) + 4)
    box_height = min(state.height, len(lines) + 2)
    top = max(1, (state.height - box_height) // 2 + 1)
    left = max(1, (state.width - box_width) // 2 + 1)
    inner = max(0, box_width - 2)

    out: list[str] = [f"\033[{top};{left}H{colors.accent}┌{'─' * inner}┐{colors.reset}"]
    for offset in range(box_height - 2):
        text = lines[offset] if offset < len(lines) else ""
        body = _pad(" " + text, inner)
        out.append(f"\033[{top + 1 + offset};{left}H{colors.accent}│{colors.reset}{body}{colors.accent}│{colors.reset}")
    out.append(f"\033[{top + box_height - 1};{left}H{colors.accent}└{'─' * inner}┘{colors.reset}")
    return "".join(out)


def render_frame(state: AppState, width: int, height: int, colors: ColorConfig) -> str:
    """Compose a full screen for ``state`` at ``width`` x ``height``."""
    width = max(1, width)
    height = max(1, height)
    tree_width = tree_pane_width(state)
    tree_height = tree_pane_height(state)
    diff_width = max(1, width - tree_width - (1 if tree_width else 0))
    body_rows = max(0, height - 1 - tree_height)

    tree_rows = _tree_rows(state, tree_width, body_rows, colors) if tree_width else []
    title = build_title(state, colors)
    diff_lines = [title] + _diff_rows(state, max(0, body_rows - 1), colors)

    out: list[str] = ["\033[H"]
    for row in range(body_rows):
        parts: list[str] = [f"\033[{row + 1};1H"]
        if tree_width:
            parts.append(tree_rows[row] if row < len(tree_rows) else " " * tree_width)
            parts.append(f"{colors.text_muted}│{colors.reset}")
        if row < len(diff_lines):
            parts.append(clip_ansi_line(diff_lines[row], diff_width))
        parts.append("\033[0m\033[K")
        out.append("".join(parts))

    if tree_height:
        bottom = _horizontal_tree_rows(state, width, tree_height, colors)
        for offset in range(tree_height):
            line = bottom[offset] if offset < len(bottom) else ""
            out.append(f"\033[{body_rows + offset + 1};1H{line}\033[0m\033[K")

    document = state.document
    if document is not None and document.error is None:
        thumb = scrollbar_row(len(document.lines), state.viewport.scroll_offset, body_rows - 1)
        if thumb is not None:
            out.append(f"\033[{thumb + 2};{width}H{colors.text_muted}{SCROLLBAR_THUMB}{colors.reset}")

    out.append(f"\033[{height};1H{_status_row(state, colors)}\033[0m\033[K")
    if state.show_help:
        out.append(_help_overlay(state, colors))
    return "".join(out)
