"""pandas bridge between decoded workbooks and sheet data maps."""
