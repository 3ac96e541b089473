# profile_launcher.py
# Chrome profile launcher: search, tag and open browser profiles.
# Windows/Mac/Linux.  Requires: Python 3.10+  pip install PySide6
# SPDX-License-Identifier: MIT

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional

from PySide6.QtCore import QEvent, QObject, QPoint, Qt, Signal
from PySide6.QtGui import QAction, QCloseEvent, QKeyEvent, QMouseEvent, QResizeEvent
from PySide6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QCheckBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMenu,
    QPushButton,
    QToolBar,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

import debug_scaffold
from chrome_bridge import BackendBridge, ChromeBridge
from colors import PRESET_COLORS, contrast_of
from debug_scaffold import record_breadcrumb
from launcher_config import LauncherConfig, ThemeController
from launcher_session import (
    AddTag,
    LauncherSession,
    ModalState,
    RemoveTag,
    load_from_bridge,
)
from profile_filter import Profile
from tag_store import Tag

logger = logging.getLogger(__name__)

KEY_NAMES = {
    Qt.Key.Key_Up: "ArrowUp",
    Qt.Key.Key_Down: "ArrowDown",
    Qt.Key.Key_Return: "Enter",
    Qt.Key.Key_Enter: "Enter",
    Qt.Key.Key_Escape: "Escape",
}

LIGHT_QSS = """
QMainWindow, QWidget#central { background: #F5F6FA; color: #222; }
QLineEdit { background: #fff; border: 1px solid #D6D8E1; border-radius: 8px; padding: 6px; }
QListWidget { background: #fff; border: 1px solid #E3E5EE; border-radius: 12px; }
QListWidget::item:selected { background: #E0E7FF; }
QFrame#modalCard { background: #fff; border-radius: 12px; }
QLabel#email { color: #6B7280; }
"""

DARK_QSS = """
QMainWindow, QWidget#central { background: #171717; color: #EDEDED; }
QLineEdit { background: #262626; color: #EDEDED; border: 1px solid #3F3F46; border-radius: 8px; padding: 6px; }
QListWidget { background: #1F1F1F; color: #EDEDED; border: 1px solid #3F3F46; border-radius: 12px; }
QListWidget::item:selected { background: #312E81; }
QFrame#modalCard { background: #262626; color: #EDEDED; border-radius: 12px; }
QLabel#email { color: #A1A1AA; }
"""


def system_prefers_dark() -> bool:
    """Return True when the OS reports a dark color scheme (Qt 6.5+)."""
    hints = QApplication.styleHints()
    scheme = getattr(hints, "colorScheme", None)
    color_scheme = getattr(Qt, "ColorScheme", None)
    if scheme is None or color_scheme is None:
        return False
    return scheme() == color_scheme.Dark


def chip_style(color: str) -> str:
    return (
        f"background: {color}; color: {contrast_of(color)};"
        " border: none; border-radius: 9px; padding: 2px 8px;"
    )


class BridgeLoader(QObject):
    """Delivers startup data from a worker thread to the UI thread."""

    loaded = Signal(object, object)


class TagChip(QToolButton):
    def __init__(self, tag: Tag, on_click: Callable[[Tag], None] | None = None) -> None:
        super().__init__()
        self.tag = tag
        self.setText(f"{tag.name}  ×" if on_click else tag.name)
        self.setStyleSheet(f"QToolButton {{ {chip_style(tag.color)} }}")
        self.setCursor(Qt.CursorShape.PointingHandCursor)
        if on_click is not None:
            self.setToolTip(f"Remove tag “{tag.name}”")
            self.clicked.connect(lambda: on_click(self.tag))


class ProfileRow(QWidget):
    def __init__(
        self,
        profile: Profile,
        tags: list[Tag],
        on_add_tag: Callable[[Profile], None],
        on_remove_tag: Callable[[Profile, Tag], None],
    ) -> None:
        super().__init__()
        self.profile = profile
        layout = QHBoxLayout(self)
        layout.setContentsMargins(12, 6, 12, 6)

        text = QVBoxLayout()
        name = QLabel(profile.name or profile.folder)
        font = name.font()
        font.setBold(True)
        name.setFont(font)
        text.addWidget(name)
        if profile.email:
            email = QLabel(profile.email)
            email.setObjectName("email")
            text.addWidget(email)
        layout.addLayout(text, 1)

        for tag in tags:
            layout.addWidget(TagChip(tag, lambda t: on_remove_tag(self.profile, t)))

        add_btn = QToolButton()
        add_btn.setText("+")
        add_btn.setToolTip("Add tag")
        add_btn.clicked.connect(lambda: on_add_tag(self.profile))
        layout.addWidget(add_btn)


class ModalOverlay(QWidget):
    """Backdrop plus card rendering the session's open dialog."""

    def __init__(self, session: LauncherSession, parent: QWidget) -> None:
        super().__init__(parent)
        self.session = session
        self.setAutoFillBackground(False)
        self.setStyleSheet("ModalOverlay { background: rgba(0, 0, 0, 110); }")
        self.setAttribute(Qt.WidgetAttribute.WA_StyledBackground, True)
        self._rendered: ModalState | None = None
        self._swatches: dict[str, QToolButton] = {}
        self.draft_edit: QLineEdit | None = None

        outer = QVBoxLayout(self)
        outer.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.card = QFrame()
        self.card.setObjectName("modalCard")
        self.card.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.card.setFixedWidth(340)
        self.card_layout = QVBoxLayout(self.card)
        outer.addWidget(self.card)
        self.hide()

    def mousePressEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if not self.card.geometry().contains(event.position().toPoint()):
            self.session.cancel_modal()
            return
        super().mousePressEvent(event)

    def _clear_card(self) -> None:
        while self.card_layout.count():
            item = self.card_layout.takeAt(0)
            w = item.widget()
            if w:
                w.deleteLater()
            elif item.layout():
                lay = item.layout()
                while lay.count():
                    sub = lay.takeAt(0).widget()
                    if sub:
                        sub.deleteLater()
                lay.deleteLater()
        self._swatches.clear()
        self.draft_edit = None

    def show_state(self, state: ModalState, profile_name: str) -> None:
        if isinstance(state, AddTag):
            same = (
                isinstance(self._rendered, AddTag)
                and self._rendered.target_folder == state.target_folder
            )
            if not same:
                self._build_add(state, profile_name)
            self._sync_swatches(state.draft_color)
        elif isinstance(state, RemoveTag):
            if state != self._rendered:
                self._build_remove(state, profile_name)
        else:
            if self._rendered is not None:
                self._clear_card()
            self._rendered = None
            self.hide()
            return
        self._rendered = state
        self.setGeometry(self.parentWidget().rect())
        self.show()
        self.raise_()

    def _build_add(self, state: AddTag, profile_name: str) -> None:
        self._clear_card()
        self.card_layout.addWidget(QLabel(f"Add tag to {profile_name}"))
        self.draft_edit = QLineEdit(state.draft_name)
        self.draft_edit.setPlaceholderText("Tag name")
        self.draft_edit.textChanged.connect(self.session.set_draft_name)
        self.card_layout.addWidget(self.draft_edit)

        swatches = QHBoxLayout()
        for color in PRESET_COLORS:
            btn = QToolButton()
            btn.setFixedSize(22, 22)
            btn.setCheckable(True)
            btn.clicked.connect(lambda _=False, c=color: self.session.set_draft_color(c))
            swatches.addWidget(btn)
            self._swatches[color] = btn
        self.card_layout.addLayout(swatches)

        buttons = QHBoxLayout()
        cancel = QPushButton("Cancel")
        cancel.clicked.connect(self.session.cancel_modal)
        ok = QPushButton("Add")
        ok.setDefault(True)
        ok.clicked.connect(self.session.confirm_modal)
        buttons.addWidget(cancel)
        buttons.addWidget(ok)
        self.card_layout.addLayout(buttons)
        self.draft_edit.setFocus()

    def _sync_swatches(self, current: str) -> None:
        for color, btn in self._swatches.items():
            selected = color == current
            btn.setChecked(selected)
            border = contrast_of(color) if selected else "transparent"
            btn.setStyleSheet(
                f"QToolButton {{ background: {color}; border: 2px solid {border};"
                " border-radius: 11px; }"
            )

    def _build_remove(self, state: RemoveTag, profile_name: str) -> None:
        self._clear_card()
        self.card_layout.addWidget(
            QLabel(f"Remove tag “{state.target_tag.name}” from {profile_name}?")
        )
        buttons = QHBoxLayout()
        cancel = QPushButton("Cancel")
        cancel.clicked.connect(self.session.cancel_modal)
        ok = QPushButton("Remove")
        ok.setDefault(True)
        ok.clicked.connect(self.session.confirm_modal)
        buttons.addWidget(cancel)
        buttons.addWidget(ok)
        self.card_layout.addLayout(buttons)
        self.card.setFocus()


class Main(QMainWindow):
    def __init__(
        self,
        bridge: Optional[BackendBridge] = None,
        session: Optional[LauncherSession] = None,
        cfg: Optional[LauncherConfig] = None,
    ) -> None:
        super().__init__()
        self.cfg = cfg or LauncherConfig.load()
        self.session = session or LauncherSession(bridge or ChromeBridge())
        self.theme = ThemeController(self.cfg, system_prefers_dark)
        self._filter_names: list[str] = []

        self.setWindowTitle("Chrome Profiles")
        self.setMinimumSize(360, 420)
        self._restore_geometry(480, 640)

        self.toolbar = QToolBar()
        self.toolbar.setMovable(False)
        self.addToolBar(Qt.ToolBarArea.TopToolBarArea, self.toolbar)
        self.theme_action = QAction(self)
        self.theme_action.triggered.connect(self.toggle_theme)
        self.toolbar.addAction(self.theme_action)

        central = QWidget()
        central.setObjectName("central")
        layout = QVBoxLayout(central)
        layout.setContentsMargins(16, 16, 16, 16)

        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText("Search by name or email…")
        self.search_edit.textChanged.connect(self.session.set_search)
        self.search_edit.installEventFilter(self)
        layout.addWidget(self.search_edit)

        self.filter_row = QHBoxLayout()
        self.filter_row.setSpacing(6)
        layout.addLayout(self.filter_row)

        self.list_widget = QListWidget()
        self.list_widget.setFocusPolicy(Qt.FocusPolicy.NoFocus)
        self.list_widget.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.list_widget.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self.list_widget.customContextMenuRequested.connect(self._show_row_menu)
        self.list_widget.itemDoubleClicked.connect(self._on_item_double_clicked)
        layout.addWidget(self.list_widget, 1)

        self.setCentralWidget(central)
        self.overlay = ModalOverlay(self.session, central)

        self.session.on_change = self.refresh
        self.session.on_focus_search = self._focus_search
        self.session.on_selection_moved = self._scroll_to_row

        self._apply_theme()
        self.refresh()
        self.search_edit.setFocus()
        self._start_load()

    # -------- loading --------
    def _start_load(self) -> None:
        self._loader = BridgeLoader()
        self._loader.loaded.connect(self._on_loaded)
        loader = self._loader
        bridge = self.session.bridge
        self.statusBar().showMessage("Loading profiles…")
        self.session.run_async(lambda: loader.loaded.emit(*load_from_bridge(bridge)))

    def _on_loaded(self, profiles: list[Profile], tags: dict) -> None:
        self.session.load(profiles, tags)
        logger.info(
            "profiles_loaded",
            extra={"event": "profiles_loaded", "profiles": len(profiles), "tagged": len(tags)},
        )
        self.statusBar().showMessage(f"{len(profiles)} profiles", 4000)

    # -------- rendering --------
    def refresh(self) -> None:
        self._render_filters()
        self._render_list()
        self._render_modal()

    def _render_filters(self) -> None:
        tags = self.session.unique_tags()
        names = [t.name for t in tags]
        if names != self._filter_names:
            while self.filter_row.count():
                w = self.filter_row.takeAt(0).widget()
                if w:
                    w.deleteLater()
            for tag in tags:
                cb = QCheckBox(tag.name)
                cb.setStyleSheet(f"QCheckBox {{ {chip_style(tag.color)} }}")
                cb.toggled.connect(
                    lambda checked, n=tag.name: self.session.set_filter_tag(n, checked)
                )
                self.filter_row.addWidget(cb)
            self.filter_row.addStretch(1)
            self._filter_names = names
        for i in range(self.filter_row.count()):
            cb = self.filter_row.itemAt(i).widget()
            if isinstance(cb, QCheckBox):
                cb.blockSignals(True)
                cb.setChecked(self.session.is_filter_selected(cb.text()))
                cb.blockSignals(False)

    def _render_list(self) -> None:
        self.list_widget.clear()
        for profile in self.session.filtered_profiles():
            item = QListWidgetItem()
            item.setData(Qt.ItemDataRole.UserRole, profile.folder)
            row = ProfileRow(
                profile,
                self.session.tags.tags_for(profile.folder),
                on_add_tag=self._open_add_tag,
                on_remove_tag=self._open_remove_tag,
            )
            item.setSizeHint(row.sizeHint())
            self.list_widget.addItem(item)
            self.list_widget.setItemWidget(item, row)
        if self.list_widget.count():
            self.list_widget.setCurrentRow(self.session.selection.selected)

    def _render_modal(self) -> None:
        state = self.session.modal.state
        folder = getattr(state, "target_folder", None)
        name = next(
            (p.name or p.folder for p in self.session.profiles if p.folder == folder), ""
        )
        self.overlay.show_state(state, name)

    def _focus_search(self) -> None:
        self.search_edit.setFocus()

    def _scroll_to_row(self, index: int) -> None:
        item = self.list_widget.item(index)
        if item is not None:
            self.list_widget.setCurrentItem(item)
            self.list_widget.scrollToItem(
                item, QAbstractItemView.ScrollHint.PositionAtCenter
            )

    # -------- input --------
    def eventFilter(self, obj: QObject, event: QEvent) -> bool:  # noqa: N802
        if event.type() == QEvent.Type.KeyPress and self._dispatch_key(
            event  # type: ignore[arg-type]
        ):
            return True
        return super().eventFilter(obj, event)

    def keyPressEvent(self, event: QKeyEvent) -> None:  # noqa: N802
        if not self._dispatch_key(event):
            super().keyPressEvent(event)

    def _dispatch_key(self, event: QKeyEvent) -> bool:
        key = KEY_NAMES.get(event.key())
        if key is None:
            return False
        handled = self.session.handle_key(key)
        # arrows never reach widgets while a dialog is open
        return handled or (self.session.modal.is_open and key.startswith("Arrow"))

    def _profile_for_item(self, item: QListWidgetItem | None) -> Profile | None:
        if item is None:
            return None
        folder = item.data(Qt.ItemDataRole.UserRole)
        return next((p for p in self.session.profiles if p.folder == folder), None)

    def _on_item_double_clicked(self, item: QListWidgetItem) -> None:
        profile = self._profile_for_item(item)
        if profile is not None:
            self.session.launch(profile)

    def _show_row_menu(self, pos: QPoint) -> None:
        profile = self._profile_for_item(self.list_widget.itemAt(pos))
        if profile is None:
            return
        menu = QMenu(self)
        menu.addAction("Launch", lambda: self.session.launch(profile))
        menu.addSeparator()
        menu.addAction("Add Tag…", lambda: self._open_add_tag(profile))
        tags = self.session.tags.tags_for(profile.folder)
        if tags:
            remove = menu.addMenu("Remove Tag")
            for tag in tags:
                remove.addAction(tag.name, lambda t=tag: self._open_remove_tag(profile, t))
        menu.exec(self.list_widget.viewport().mapToGlobal(pos))

    def _open_add_tag(self, profile: Profile) -> None:
        self.session.open_add_tag(profile.folder)
        if self.overlay.draft_edit is not None:
            self.overlay.draft_edit.installEventFilter(self)
            self.overlay.draft_edit.setFocus()

    def _open_remove_tag(self, profile: Profile, tag: Tag) -> None:
        self.session.open_remove_tag(profile.folder, tag)
        self.overlay.card.installEventFilter(self)

    # -------- theme & geometry --------
    def toggle_theme(self) -> None:
        self.theme.toggle()
        self._apply_theme()

    def _apply_theme(self) -> None:
        dark = self.theme.dark
        self.setStyleSheet(DARK_QSS if dark else LIGHT_QSS)
        self.theme_action.setText("☀ Light" if dark else "☾ Dark")

    def _restore_geometry(self, default_w: int, default_h: int) -> None:
        cfg = self.cfg
        if cfg.has_geometry:
            self.resize(cfg.last_width, cfg.last_height)  # type: ignore[arg-type]
            self.move(cfg.last_x, cfg.last_y)  # type: ignore[arg-type]
        else:
            self.resize(default_w, default_h)

    def resizeEvent(self, event: QResizeEvent) -> None:  # noqa: N802
        super().resizeEvent(event)
        overlay = getattr(self, "overlay", None)
        if overlay is not None and overlay.isVisible():
            overlay.setGeometry(self.centralWidget().rect())

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802
        try:
            self.cfg.last_width = int(self.width())
            self.cfg.last_height = int(self.height())
            self.cfg.last_x = int(self.x())
            self.cfg.last_y = int(self.y())
            self.cfg.save()
            record_breadcrumb("window_closed")
        finally:
            super().closeEvent(event)


def main() -> None:
    app = QApplication(sys.argv)
    debug_scaffold.install_debug_scaffold(app, app_name=debug_scaffold.APP_NAME)
    mw = Main()
    mw.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
