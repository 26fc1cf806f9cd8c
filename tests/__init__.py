from PySide6 import QtCore

# Must be enabled before FinanceFlow.settings.lib creates the user directories
QtCore.QStandardPaths.setTestModeEnabled(True)
