"""CSV/Excel payment ledger parser."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from obligations.engine.models import Transaction, TransactionType

logger = logging.getLogger(__name__)


class CSVParser:
    """Parse CSV/Excel payment ledgers into Transaction objects."""

    # Default column mapping
    DEFAULT_MAPPING: Dict[str, str] = {
        "date": "date",
        "amount": "amount",
        "description": "description",
        "reference": "reference",
        "type": "type",
        "cycle_number": "cycle_number",
        "interest": "interest",
        "principal": "principal",
    }

    # Columns copied into Transaction.metadata when present
    METADATA_FIELDS = ("cycle_number", "interest", "principal")

    # Common date formats to try
    DATE_FORMATS = [
        "%Y-%m-%d",
        "%d/%m/%Y",
        "%m/%d/%Y",
        "%d-%m-%Y",
        "%Y/%m/%d",
        "%d.%m.%Y",
    ]

    def __init__(self, column_mapping: Optional[Dict[str, str]] = None):
        """
        Initialize parser with optional custom column mapping.

        Args:
            column_mapping: Dict mapping our field names to ledger column names.
                          Example: {"date": "Paid On", "amount": "Paid"}
                          Fields left out keep their default column name.
        """
        self.column_mapping = {**self.DEFAULT_MAPPING, **(column_mapping or {})}

    def parse(self, file_path: str | Path, **kwargs) -> List[Transaction]:
        """
        Parse a CSV or Excel ledger into Transaction objects.

        Args:
            file_path: Path to the CSV/Excel file.
            **kwargs: Additional arguments passed to pandas read function.

        Returns:
            List of Transaction objects.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If required columns are missing.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        df = self._read_file(file_path, **kwargs)
        self._validate_columns(df)
        transactions = self._convert_dataframe(df)
        logger.debug("Parsed %d payments from %s", len(transactions), file_path.name)
        return transactions

    def _read_file(self, file_path: Path, **kwargs) -> pd.DataFrame:
        """Read file based on extension."""
        suffix = file_path.suffix.lower()

        if suffix == ".csv":
            return pd.read_csv(file_path, **kwargs)
        elif suffix in (".xlsx", ".xls"):
            return pd.read_excel(file_path, **kwargs)
        else:
            raise ValueError(f"Unsupported file format: {suffix}. Use .csv, .xlsx, or .xls")

    def _validate_columns(self, df: pd.DataFrame) -> None:
        """
        Validate that required columns exist in the dataframe.

        Raises:
            ValueError: If required columns are missing.
        """
        required = ["date", "amount"]
        missing = []

        for field in required:
            col_name = self.column_mapping.get(field, field)
            if col_name not in df.columns:
                missing.append(f"{field} (expected column: '{col_name}')")

        if missing:
            available = ", ".join(str(c) for c in df.columns.tolist())
            raise ValueError(
                f"Missing required columns: {', '.join(missing)}. "
                f"Available columns: {available}. "
                f"Use column_mapping parameter to map your columns."
            )

    def _convert_dataframe(self, df: pd.DataFrame) -> List[Transaction]:
        """Convert a DataFrame to list of Transaction objects."""
        transactions: List[Transaction] = []

        for idx, row in df.iterrows():
            try:
                txn = self._convert_row(row, idx)
                transactions.append(txn)
            except (ValueError, InvalidOperation) as e:
                # Log warning but continue processing
                logger.warning("Skipping row %s: %s", idx, e)

        return transactions

    def _cell(self, row: pd.Series, field: str):
        """Value of a mapped column, or None when absent or empty."""
        col = self.column_mapping.get(field, field)
        if col not in row.index or pd.isna(row[col]):
            return None
        return row[col]

    def _convert_row(self, row: pd.Series, idx: int) -> Transaction:
        """Convert a single row to a Transaction object."""
        txn_date = self._parse_date(self._cell(row, "date"))
        amount = self._parse_amount(self._cell(row, "amount"))

        description = self._cell(row, "description")
        reference = self._cell(row, "reference")

        raw_type = self._cell(row, "type")
        if raw_type is not None:
            txn_type = self._parse_type(str(raw_type))
        else:
            txn_type = TransactionType.DEBIT if amount < 0 else TransactionType.CREDIT

        return Transaction(
            id=f"PAY-{idx:06d}",
            date=txn_date,
            amount=amount,
            description=str(description) if description is not None else "",
            type=txn_type,
            reference=str(reference) if reference is not None else None,
            source="ledger",
            raw_data=row.to_dict(),
            metadata=self._parse_metadata(row),
        )

    def _parse_metadata(self, row: pd.Series) -> dict:
        """Cycle number and principal/interest split, when the ledger has them."""
        metadata = {}
        cycle_number = self._cell(row, "cycle_number")
        if cycle_number is not None:
            metadata["cycle_number"] = int(float(cycle_number))
        for field in ("interest", "principal"):
            value = self._cell(row, field)
            if value is not None:
                metadata[field] = self._parse_amount(value)
        return metadata

    def _parse_date(self, value) -> datetime:
        """Parse date from various formats."""
        if value is None:
            raise ValueError("Missing date")
        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()
        if isinstance(value, datetime):
            return value

        str_value = str(value).strip()

        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(str_value, fmt)
            except ValueError:
                continue

        raise ValueError(f"Could not parse date: {value!r}")

    def _parse_amount(self, value) -> Decimal:
        """Parse amount handling various number formats."""
        if value is None:
            raise ValueError("Missing amount")
        if isinstance(value, (int, float)):
            return Decimal(str(value))

        str_value = str(value).strip()

        # Handle European format: 1.234,56
        if "," in str_value and "." in str_value:
            if str_value.rindex(",") > str_value.rindex("."):
                str_value = str_value.replace(".", "").replace(",", ".")
            else:
                str_value = str_value.replace(",", "")

        # Handle comma as decimal separator: 1234,56
        elif "," in str_value:
            str_value = str_value.replace(",", ".")

        # Remove currency symbols and whitespace
        for symbol in ("R$", "$", "€", "£", "₹"):
            str_value = str_value.replace(symbol, "")

        return Decimal(str_value.strip())

    def _parse_type(self, value: str) -> TransactionType:
        """Parse transaction type from string."""
        normalized = value.lower().strip()
        credit_words = {"credit", "c", "receipt", "refund"}
        debit_words = {"debit", "d", "payment", "withdrawal"}

        if normalized in credit_words:
            return TransactionType.CREDIT
        elif normalized in debit_words:
            return TransactionType.DEBIT
        else:
            raise ValueError(f"Unknown transaction type: {value!r}")
