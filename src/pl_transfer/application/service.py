"""TransferApplicationService: maps facade results to API schemas."""

from src.pl_common.errors import TransferNotFoundError
from src.pl_storage.facade import Repository
from src.pl_transfer.application.schemas import TransferListResponse, TransferResponse


class TransferApplicationService:
    async def create_transfer(
        self,
        repo: Repository,
        sender_id: str,
        recipient_id: str,
        amount_cents: int,
        description: str | None = None,
    ) -> TransferResponse:
        transfer = await repo.create_transfer(sender_id, recipient_id, amount_cents, description)
        return TransferResponse.from_domain(transfer)

    async def get_transfer(
        self, repo: Repository, account_id: str, transfer_id: str
    ) -> TransferResponse:
        """Only the sender or recipient may see a transfer; anyone else gets NotFound."""
        transfer = await repo.get_transfer(transfer_id)
        if account_id not in (transfer.sender_id, transfer.recipient_id):
            raise TransferNotFoundError(transfer_id)
        return TransferResponse.from_domain(transfer)

    async def list_transfers(
        self, repo: Repository, account_id: str, page: int, page_size: int
    ) -> TransferListResponse:
        transfers, total = await repo.list_transfers(account_id, page, page_size)
        return TransferListResponse(
            items=[TransferResponse.from_domain(t) for t in transfers],
            page=page,
            page_size=page_size,
            total=total,
        )
