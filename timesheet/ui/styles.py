"""
Dark mode stylesheet for the timesheet window.
Catppuccin Mocha-inspired palette.
"""

DARK_STYLESHEET = """
/* ── Base ────────────────────────────────────────────────────────── */
QWidget {
    background-color: #1e1e2e;
    color: #cdd6f4;
    font-family: "Segoe UI", "Inter", sans-serif;
    font-size: 13px;
}

/* ── Buttons ─────────────────────────────────────────────────────── */
QPushButton {
    background-color: #313244;
    border: 1px solid #585b70;
    border-radius: 8px;
    padding: 8px 18px;
    font-weight: 600;
}

QPushButton:hover {
    border-color: #89b4fa;
}

QPushButton:disabled {
    color: #585b70;
    border-color: #313244;
}

QPushButton#primary {
    background-color: #a6e3a1;
    color: #1e1e2e;
    border: none;
}

QPushButton#warning {
    background-color: #fab387;
    color: #1e1e2e;
    border: none;
}

QPushButton#danger {
    background-color: #f38ba8;
    color: #1e1e2e;
    border: none;
}

/* ── Inputs ──────────────────────────────────────────────────────── */
QComboBox {
    background-color: #313244;
    border: 1px solid #585b70;
    border-radius: 6px;
    padding: 6px 10px;
}

QComboBox QAbstractItemView {
    background-color: #313244;
    selection-background-color: #45475a;
}

/* ── Labels ──────────────────────────────────────────────────────── */
QLabel#timer {
    font-size: 56px;
    font-weight: 700;
    color: #f9e2af;
}

QLabel#state_label {
    font-size: 16px;
    color: #cba6f7;
}

QLabel#metric_value {
    font-size: 22px;
    font-weight: 700;
    color: #a6e3a1;
}

QLabel#subtitle {
    color: #a6adc8;
}

/* ── Idle banner ─────────────────────────────────────────────────── */
QFrame#idle_banner {
    background-color: #45475a;
    border: 1px solid #fab387;
    border-radius: 8px;
}

/* ── Tables and lists ────────────────────────────────────────────── */
QTableWidget, QListWidget {
    background-color: #181825;
    alternate-background-color: #1e1e2e;
    gridline-color: #313244;
    border: 1px solid #313244;
    border-radius: 6px;
}

QHeaderView::section {
    background-color: #313244;
    color: #89b4fa;
    padding: 4px 8px;
    border: none;
}

/* ── Tabs ────────────────────────────────────────────────────────── */
QTabWidget::pane {
    border: 1px solid #313244;
}

QTabBar::tab {
    background-color: #181825;
    color: #a6adc8;
    padding: 8px 20px;
}

QTabBar::tab:selected {
    color: #89b4fa;
    border-bottom: 2px solid #89b4fa;
}
"""
