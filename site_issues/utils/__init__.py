"""Pure helpers: duration formatting and spreadsheet export."""
