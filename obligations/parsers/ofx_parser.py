"""OFX bank statement parser for obligation payments."""

import logging
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from ofxparse import OfxParser as OfxLib

from obligations.engine.models import Transaction, TransactionType

logger = logging.getLogger(__name__)


class OFXParser:
    """
    Parse OFX/QFX bank statements into Transaction objects.

    Bank statements record payments made towards an obligation as debits;
    ``payments_only`` keeps just those.
    """

    def __init__(self, payments_only: bool = False, match_text: Optional[str] = None):
        """
        Initialize the parser.

        Args:
            payments_only: Drop credits (refunds, deposits) from the statement.
            match_text: Keep only transactions whose memo or payee contains this
                text (case-insensitive).
        """
        self.payments_only = payments_only
        self.match_text = match_text.lower() if match_text else None

    def parse(self, file_path: str | Path) -> List[Transaction]:
        """
        Parse an OFX file and return a list of Transaction objects.

        Args:
            file_path: Path to the OFX/QFX file.

        Returns:
            List of Transaction objects from the bank statement.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the file cannot be parsed.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"OFX file not found: {file_path}")

        if file_path.suffix.lower() not in (".ofx", ".qfx"):
            raise ValueError(f"Unsupported file format: {file_path.suffix}")

        try:
            with open(file_path, "rb") as f:
                ofx = OfxLib.parse(f)
        except Exception as e:
            raise ValueError(f"Failed to parse OFX file: {e}") from e

        transactions: List[Transaction] = []

        for account in self._get_accounts(ofx):
            for stmt_txn in account.statement.transactions:
                txn = self._convert_transaction(stmt_txn, account)
                if self._keep(txn):
                    transactions.append(txn)

        logger.debug("Parsed %d bank transactions from %s", len(transactions), file_path.name)
        return transactions

    def parse_multiple(self, file_paths: List[str | Path]) -> List[Transaction]:
        """
        Parse multiple OFX files and return combined transactions.

        Args:
            file_paths: List of paths to OFX/QFX files.

        Returns:
            Combined list of Transaction objects.
        """
        all_transactions: List[Transaction] = []
        for path in file_paths:
            all_transactions.extend(self.parse(path))
        return all_transactions

    def _keep(self, txn: Transaction) -> bool:
        if self.payments_only and txn.type != TransactionType.DEBIT:
            return False
        if self.match_text and self.match_text not in txn.description.lower():
            return False
        return True

    def _get_accounts(self, ofx):
        """Extract accounts from parsed OFX data."""
        accounts = getattr(ofx, "accounts", None)
        if accounts:
            return accounts
        if getattr(ofx, "account", None) is not None:
            return [ofx.account]
        raise ValueError("No accounts found in OFX file")

    def _convert_transaction(self, stmt_txn, account) -> Transaction:
        """Convert an OFX statement transaction to our Transaction model."""
        amount = Decimal(str(stmt_txn.amount))

        txn_type = (
            TransactionType.CREDIT if amount >= 0
            else TransactionType.DEBIT
        )

        txn_date = stmt_txn.date
        if isinstance(txn_date, str):
            txn_date = datetime.strptime(txn_date[:8], "%Y%m%d")

        memo = getattr(stmt_txn, "memo", "") or ""
        payee = getattr(stmt_txn, "payee", "") or ""

        return Transaction(
            id=getattr(stmt_txn, "id", None) or str(uuid4()),
            date=txn_date,
            amount=amount,
            description=memo or payee,
            type=txn_type,
            reference=getattr(stmt_txn, "checknum", None) or None,
            source="bank",
            raw_data={
                "account_id": getattr(account, "account_id", ""),
                "bank_id": getattr(account, "routing_number", ""),
                "type": getattr(stmt_txn, "type", ""),
                "payee": payee,
            },
        )
