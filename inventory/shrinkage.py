"""
Stock audits and shrinkage debts.

A physical count that comes up short of system stock is a loss; the loss
can be charged to the staff member accountable for the shelf, who then
acknowledges it and settles it (usually from salary).
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Count, Q, F
from django.utils import timezone

from core.models import Profile, Sale
from core.utils import record_audit, notify_store_owner, to_decimal
from .models import StockAudit, StockAuditItem, ShrinkageDebt

logger = logging.getLogger('inventory')


def create_stock_audit(store, user, collected_by='', notes=''):
    audit = StockAudit.objects.create(
        store=store,
        counted_by=user,
        collected_by=collected_by or (user.get_full_name() or user.username),
        notes=notes,
    )
    logger.info(f"Stock audit {audit.reference} started in {store.access_code}")
    return audit


def add_audit_item(audit, product, physical_count, notes=''):
    """Record a counted product. Counting the same product again replaces the count."""
    if audit.status != 'IN_PROGRESS':
        raise ValueError(f'Stock audit {audit.reference} is {audit.get_status_display().lower()}')
    if product.store_id != audit.store_id:
        raise ValueError('Product does not belong to this store')
    try:
        physical_count = int(physical_count)
    except (TypeError, ValueError):
        raise ValueError('Physical count must be a whole number')
    if physical_count < 0:
        raise ValueError('Physical count cannot be negative')

    item = StockAuditItem.objects.filter(audit=audit, product=product).first()
    if item is None:
        item = StockAuditItem(audit=audit, product=product)
    elif item.status == 'RESOLVED':
        raise ValueError(f'{product.name} already has a shrinkage debt recorded and cannot be recounted')

    item.system_stock = product.quantity
    item.physical_count = physical_count
    item.unit_price = product.selling_price
    item.notes = notes
    item.save()
    return item


def complete_audit(audit, user=None):
    if audit.status != 'IN_PROGRESS':
        raise ValueError(f'Stock audit {audit.reference} is already {audit.get_status_display().lower()}')

    audit.status = 'COMPLETED'
    audit.save(update_fields=['status', 'updated_at'])

    flagged = audit.items.filter(variance__gt=0)
    record_audit(
        audit.store, 'STOCK_AUDIT', 'stock_audit',
        f"Stock audit {audit.reference} completed: {audit.items.count()} items counted, "
        f"{flagged.count()} short, KES {audit.total_debt} missing",
        resource_id=audit.id, actor=user,
        new_value={'status': 'COMPLETED', 'total_debt': float(audit.total_debt)},
    )
    return audit


def record_shrinkage_debt(audit_item, agent, notes=None, actor=None):
    """Charge the missing units of an audit line to a staff member."""
    if audit_item.variance <= 0:
        raise ValueError('Only a shortage can be recorded as shrinkage debt')
    if ShrinkageDebt.objects.filter(audit_item=audit_item).exists():
        raise ValueError('Shrinkage debt already recorded for this item')

    audit = audit_item.audit
    store = audit.store
    profile = Profile.objects.filter(user=agent, store=store).first()
    if profile is None:
        raise ValueError(f'{agent.username} is not a staff member of {store.name}')

    with transaction.atomic():
        debt = ShrinkageDebt.objects.create(
            store=store,
            agent=agent,
            product=audit_item.product,
            product_name=audit_item.product.name,
            audit=audit,
            audit_item=audit_item,
            quantity_missing=audit_item.variance,
            unit_price=audit_item.unit_price,
            total_debt_amount=audit_item.debt_amount,
            notes=notes or f"Physical count variance detected during stock audit by {audit.collected_by}",
        )

        Profile.objects.filter(pk=profile.pk).update(
            total_shrinkage_debt=F('total_shrinkage_debt') + debt.total_debt_amount
        )

        audit_item.status = 'RESOLVED'
        audit_item.save()

        record_audit(
            store, 'SHRINKAGE_RECORDED', 'shrinkage_debt',
            f"Shrinkage debt of KES {debt.total_debt_amount} recorded against {agent.username} "
            f"for {debt.quantity_missing} x {debt.product_name}",
            resource_id=debt.id, actor=actor,
            new_value={'agent': agent.username, 'amount': float(debt.total_debt_amount), 'status': debt.status},
            metadata={'audit': audit.reference},
        )

    notify_store_owner(
        store, 'SHRINKAGE', 'Shrinkage recorded',
        f"{agent.get_full_name() or agent.username} owes KES {debt.total_debt_amount} "
        f"for {debt.quantity_missing} x {debt.product_name}",
    )
    logger.info(f"Shrinkage debt {debt.id}: {agent.username} - {debt.product_name} (KES {debt.total_debt_amount})")
    return debt


def update_debt_status(debt, status, notes=None, actor=None):
    if status not in dict(ShrinkageDebt.STATUS_CHOICES):
        raise ValueError(f'Unknown status: {status}')
    if debt.status == 'RESOLVED':
        raise ValueError('Resolved debts cannot change status')

    old_status = debt.status
    with transaction.atomic():
        debt.status = status
        if notes is not None:
            debt.notes = notes
        debt.save(update_fields=['status', 'notes', 'updated_at'])

        if status == 'ACKNOWLEDGED' and old_status != 'ACKNOWLEDGED':
            Profile.objects.filter(user=debt.agent).update(
                acknowledged_shrinkage_debt=F('acknowledged_shrinkage_debt') + debt.total_debt_amount
            )
        elif old_status == 'ACKNOWLEDGED' and status in ('PENDING', 'DISPUTED'):
            Profile.objects.filter(user=debt.agent).update(
                acknowledged_shrinkage_debt=F('acknowledged_shrinkage_debt') - debt.total_debt_amount
            )

        record_audit(
            debt.store, 'SHRINKAGE_UPDATED', 'shrinkage_debt',
            f"Shrinkage debt of {debt.agent.username} changed from {old_status} to {status}",
            resource_id=debt.id, actor=actor,
            old_value={'status': old_status}, new_value={'status': status},
        )
    return debt


def resolve_debt(debt, amount, actor=None):
    amount = to_decimal(amount)
    if amount <= 0:
        raise ValueError('Resolved amount must be greater than 0')
    if debt.status == 'RESOLVED':
        raise ValueError('Debt is already resolved')

    old_status = debt.status
    with transaction.atomic():
        debt.status = 'RESOLVED'
        debt.resolved_amount = amount
        debt.resolved_at = timezone.now()
        debt.notes = f"Resolved: KES {amount} deducted from salary"
        debt.save(update_fields=['status', 'resolved_amount', 'resolved_at', 'notes', 'updated_at'])

        record_audit(
            debt.store, 'SHRINKAGE_UPDATED', 'shrinkage_debt',
            f"Shrinkage debt of {debt.agent.username} resolved: KES {amount} deducted",
            resource_id=debt.id, actor=actor,
            old_value={'status': old_status}, new_value={'status': 'RESOLVED', 'amount': float(amount)},
        )
    logger.info(f"Shrinkage debt {debt.id} resolved: KES {amount} deducted")
    return debt


def store_shrinkage_stats(store):
    debts = ShrinkageDebt.objects.filter(store=store)

    def total(status=None):
        queryset = debts.filter(status=status) if status else debts
        return queryset.aggregate(total=Sum('total_debt_amount'))['total'] or Decimal('0')

    return {
        'total_shrinkage_loss': total(),
        'pending_debts': total('PENDING'),
        'acknowledged_debts': total('ACKNOWLEDGED'),
        'resolved_debts': total('RESOLVED'),
        'incident_count': debts.count(),
    }


def agent_shrinkage_summary(store):
    """Shrinkage per staff member, largest loss first, set against what they sold."""
    rows = ShrinkageDebt.objects.filter(store=store).values(
        'agent_id', 'agent__username', 'agent__first_name', 'agent__last_name'
    ).annotate(
        incidents=Count('id'),
        pending_incidents=Count('id', filter=Q(status='PENDING')),
        acknowledged_incidents=Count('id', filter=Q(status='ACKNOWLEDGED')),
        total_amount=Sum('total_debt_amount'),
        acknowledged_amount=Sum('total_debt_amount', filter=Q(status='ACKNOWLEDGED')),
        resolved_amount=Sum('resolved_amount', filter=Q(status='RESOLVED')),
    ).order_by('-total_amount')

    summary = []
    for row in rows:
        sales_value = Sale.objects.filter(
            store=store, cashier_id=row['agent_id'], status='COMPLETED'
        ).aggregate(total=Sum('total'))['total'] or Decimal('0')
        total_amount = row['total_amount'] or Decimal('0')
        name = f"{row['agent__first_name']} {row['agent__last_name']}".strip()
        summary.append({
            'agent_id': row['agent_id'],
            'agent_name': name or row['agent__username'],
            'total_shrinkage_incidents': row['incidents'],
            'pending_incidents': row['pending_incidents'],
            'acknowledged_incidents': row['acknowledged_incidents'],
            'total_shrinkage_amount': total_amount,
            'acknowledged_amount': row['acknowledged_amount'] or Decimal('0'),
            'resolved_amount': row['resolved_amount'] or Decimal('0'),
            'total_sales_value': sales_value,
            'shrinkage_to_sales_ratio': round(float(total_amount / sales_value * 100), 2) if sales_value else 0,
        })
    return summary


def apply_audit(audit, user=None):
    """Bring system stock in line with the physical count."""
    if audit.status == 'APPLIED':
        raise ValueError(f'Stock audit {audit.reference} has already been applied')

    adjusted = 0
    with transaction.atomic():
        for item in audit.items.select_related('product'):
            if item.variance == 0:
                continue
            item.product.adjust_stock(
                -item.variance, 'SHRINKAGE', user=user, reference=audit.reference,
                notes=f"Counted {item.physical_count}, system had {item.system_stock}",
            )
            adjusted += 1

        audit.status = 'APPLIED'
        audit.applied_by = user
        audit.applied_at = timezone.now()
        audit.save(update_fields=['status', 'applied_by', 'applied_at', 'updated_at'])

        record_audit(
            audit.store, 'STOCK_AUDIT', 'stock_audit',
            f"Stock audit {audit.reference} applied: {adjusted} products adjusted",
            resource_id=audit.id, actor=user,
            new_value={'status': 'APPLIED', 'adjusted': adjusted},
        )

    logger.info(f"Stock audit {audit.reference} applied, {adjusted} products adjusted")
    return adjusted
