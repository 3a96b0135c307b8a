from .client import parse_sheet_range


def rows_from_values(values, sheet_range, map_header, positional_fields):
    """
    Turn a Sheets value grid into record dicts.

    If any cell of the first row maps to a known field (via map_header),
    that row is the header and columns are keyed by it; otherwise every row
    is data and columns are keyed positionally by positional_fields.
    Blank rows are skipped. Each record carries '_line', the 1-based row
    number in the sheet, so validation errors can point at the real cell.
    """
    if not values:
        return []

    _, start_row = parse_sheet_range(sheet_range)
    header_map = [map_header(str(cell if cell is not None else '')) for cell in values[0]]
    has_header = any(field is not None for field in header_map)
    data_rows = values[1:] if has_header else values
    first_line = start_row + (1 if has_header else 0)

    records = []
    for offset, row in enumerate(data_rows):
        if not any(str(cell if cell is not None else '').strip() for cell in row):
            continue

        record = {'_line': first_line + offset}
        if has_header:
            for col_index, cell in enumerate(row):
                field = header_map[col_index] if col_index < len(header_map) else None
                if field:
                    record[field] = cell
        else:
            for col_index, field in enumerate(positional_fields):
                record[field] = row[col_index] if col_index < len(row) else None
        records.append(record)

    return records
