from decimal import Decimal

from core.models import Product

SESSION_KEY = 'pos_cart'


class SessionCart:
    """
    POS cart kept in the session as a list of line dicts.

    Stock is checked when lines are added or changed and again at checkout.
    """

    def __init__(self, session):
        self.session = session
        self.items = list(session.get(SESSION_KEY, []))

    def _save(self):
        self.session[SESSION_KEY] = self.items
        self.session.modified = True

    def _find(self, product_id):
        for item in self.items:
            if item['product_id'] == product_id:
                return item
        return None

    def add(self, product, quantity=1):
        quantity = int(quantity)
        if quantity <= 0:
            raise ValueError('Quantity must be at least 1')
        if product.quantity <= 0:
            raise ValueError(f'{product.name} is out of stock')
        if quantity > product.quantity:
            raise ValueError(f'Only {product.quantity} units available, requested {quantity}')

        item = self._find(product.id)
        if item is not None:
            new_quantity = item['quantity'] + quantity
            if new_quantity > product.quantity:
                raise ValueError(f'Cannot add more - total would exceed stock ({product.quantity} available)')
            item['quantity'] = new_quantity
            item['current_stock'] = product.quantity
            item['total_price'] = float(Decimal(str(item['unit_price'])) * new_quantity)
        else:
            self.items.append({
                'product_id': product.id,
                'product_name': product.name,
                'product_sku': product.sku,
                'barcode': product.barcode,
                'quantity': quantity,
                'unit_price': float(product.selling_price),
                'total_price': float(product.selling_price * quantity),
                'current_stock': product.quantity,
            })

        self._save()
        return self

    def update(self, product_id, quantity):
        """Set a line's quantity. Zero or less removes the line."""
        quantity = int(quantity)
        item = self._find(product_id)
        if item is None:
            raise ValueError('Item not found in cart')

        if quantity <= 0:
            return self.remove(product_id)

        product = Product.objects.filter(pk=product_id).first()
        available = product.quantity if product else item['current_stock']
        if quantity > available:
            raise ValueError(f'Only {available} units available')

        item['quantity'] = quantity
        item['current_stock'] = available
        item['total_price'] = float(Decimal(str(item['unit_price'])) * quantity)
        self._save()
        return self

    def remove(self, product_id):
        self.items = [item for item in self.items if item['product_id'] != product_id]
        self._save()
        return self

    def clear(self):
        self.items = []
        self.session.pop(SESSION_KEY, None)
        self.session.modified = True
        return self

    @property
    def total_amount(self):
        return sum((Decimal(str(item['total_price'])) for item in self.items), Decimal('0'))

    @property
    def item_count(self):
        return sum(item['quantity'] for item in self.items)

    def __len__(self):
        return len(self.items)

    def to_dict(self):
        return {
            'cart_items': self.items,
            'cart_count': len(self.items),
            'item_count': self.item_count,
            'total_amount': float(self.total_amount),
        }
