"""Product domain exceptions."""

from uuid import UUID

from ...core.exceptions import ServiceException


class ProductNotFoundException(ServiceException):
    """Raised when a product does not exist."""

    status_code = 404
    error_code = "PRODUCT_NOT_FOUND"
    title = "Product not found"

    def __init__(self, product_id: UUID):
        self.product_id = product_id
        super().__init__(
            f"The product with the ID {product_id} is not found.",
            details={"product_id": str(product_id)},
        )
