from gplink.adapters.normalize import as_column, expand_columns, is_data_token, is_numeric

__all__ = ["as_column", "expand_columns", "is_data_token", "is_numeric"]
