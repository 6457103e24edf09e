class RepositoryError(Exception):
    """Ошибка слоя хранения; message содержит исходное сообщение СУБД."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProductCreateError(RepositoryError):
    def __init__(self, cause: str):
        super().__init__(f"product insert failed: {cause}")


class WorkshopLinkError(RepositoryError):
    def __init__(self, workshop_id: int, cause: str):
        super().__init__(f"failed to link workshop {workshop_id}: {cause}")
        self.workshop_id = workshop_id


class TransactionCommitError(RepositoryError):
    def __init__(self, cause: str):
        super().__init__(f"transaction commit failed: {cause}")


class NothingDeletedError(RepositoryError):
    def __init__(self, product_id: int):
        super().__init__(f"no rows deleted for product {product_id}")
        self.product_id = product_id


class ProductDeleteError(RepositoryError):
    def __init__(self, product_id: int, cause: str):
        super().__init__(f"failed to delete product {product_id}: {cause}")
        self.product_id = product_id
