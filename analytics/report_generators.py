import io
from datetime import timedelta
from decimal import Decimal

import pandas as pd
import plotly.express as px
import plotly.io as pio
from django.db.models import Sum, Count, Avg, F, DecimalField, ExpressionWrapper
from django.db.models.functions import TruncDay
from django.utils import timezone

from core.models import Sale, SaleItem, Expense, PAYMENT_LABELS


class ReportGenerator:
    """Base class for all report generators"""

    def __init__(self, store, start_date=None, end_date=None):
        self.store = store
        self.end_date = end_date or timezone.localdate()
        self.start_date = start_date or self.end_date - timedelta(days=30)
        if self.start_date > self.end_date:
            raise ValueError('Start date must be before end date')

    def format_currency(self, amount):
        """Format amount as currency"""
        return f"KES {amount:,.2f}"

    def calculate_percentage(self, part, total):
        """Calculate percentage"""
        if not total:
            return 0
        return float(part) / float(total) * 100


class SalesReportGenerator(ReportGenerator):
    """Sales, payment mix, best sellers and profit of one store over a date range"""

    def completed_sales(self):
        return Sale.objects.filter(
            store=self.store,
            created_at__date__range=[self.start_date, self.end_date],
            status='COMPLETED'
        )

    def generate_detailed_report(self):
        sales = self.completed_sales()
        return {
            'period': f"{self.start_date} to {self.end_date}",
            'generated_at': timezone.now().isoformat(),
            'summary': self._generate_summary(sales),
            'payment_analysis': self._generate_payment_analysis(sales),
            'top_products': self._generate_top_products(sales),
            'profit': self._generate_profit(sales),
            'daily_breakdown': self._generate_daily_breakdown(sales),
        }

    def _generate_summary(self, sales):
        summary = sales.aggregate(
            total_sales=Sum('total'),
            total_transactions=Count('id'),
            avg_sale=Avg('total'),
            total_tax=Sum('tax_amount'),
        )
        return {
            'total_sales': float(summary['total_sales'] or 0),
            'total_transactions': summary['total_transactions'] or 0,
            'avg_sale': round(float(summary['avg_sale'] or 0), 2),
            'total_tax': float(summary['total_tax'] or 0),
        }

    def _generate_payment_analysis(self, sales):
        """Analyze payment methods"""
        grand_total = sales.aggregate(total=Sum('total'))['total'] or 0
        payment_data = sales.values('payment_method').annotate(
            total=Sum('total'),
            count=Count('id'),
        ).order_by('-total')

        return [
            {
                'method': payment['payment_method'],
                'label': PAYMENT_LABELS.get(payment['payment_method'], payment['payment_method']),
                'total': float(payment['total'] or 0),
                'count': payment['count'],
                'percentage': round(self.calculate_percentage(payment['total'] or 0, grand_total), 1),
            }
            for payment in payment_data
        ]

    def _generate_top_products(self, sales, limit=10):
        rows = SaleItem.objects.filter(sale__in=sales).values('product_id', 'product_name').annotate(
            quantity_sold=Sum('quantity'),
            revenue=Sum('total_price'),
            profit=Sum(ExpressionWrapper(
                (F('unit_price') - F('cost_price')) * F('quantity'), output_field=DecimalField()
            )),
        ).order_by('-revenue')[:limit]

        return [
            {
                'product_id': row['product_id'],
                'name': row['product_name'],
                'quantity_sold': row['quantity_sold'] or 0,
                'revenue': float(row['revenue'] or 0),
                'profit': float(row['profit'] or 0),
            }
            for row in rows
        ]

    def _generate_profit(self, sales):
        """Revenue minus cost of goods minus expenses"""
        items = SaleItem.objects.filter(sale__in=sales).aggregate(
            revenue=Sum('total_price'),
            cost=Sum(ExpressionWrapper(F('cost_price') * F('quantity'), output_field=DecimalField())),
        )
        revenue = items['revenue'] or Decimal('0')
        cost = items['cost'] or Decimal('0')
        expenses = Expense.objects.filter(
            store=self.store, date__range=[self.start_date, self.end_date]
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0')

        gross = revenue - cost
        net = gross - expenses
        return {
            'revenue': float(revenue),
            'cost_of_goods': float(cost),
            'gross_profit': float(gross),
            'expenses': float(expenses),
            'net_profit': float(net),
            'net_margin': round(self.calculate_percentage(net, revenue), 1),
        }

    def _generate_daily_breakdown(self, sales):
        daily_data = sales.annotate(
            day=TruncDay('created_at')
        ).values('day').annotate(
            daily_total=Sum('total'),
            daily_count=Count('id'),
        ).order_by('day')

        return [
            {
                'date': day['day'].date().isoformat(),
                'total': float(day['daily_total'] or 0),
                'count': day['daily_count'],
            }
            for day in daily_data
        ]

    def export_to_dataframe(self):
        """Export report data to pandas DataFrames, one per section"""
        report = self.generate_detailed_report()
        dfs = {}

        summary = report['summary']
        profit = report['profit']
        dfs['Summary'] = pd.DataFrame({
            'Metric': ['Total Sales', 'Total Transactions', 'Average Sale', 'Total Tax',
                       'Cost of Goods', 'Expenses', 'Net Profit', 'Net Margin'],
            'Value': [
                self.format_currency(summary['total_sales']),
                summary['total_transactions'],
                self.format_currency(summary['avg_sale']),
                self.format_currency(summary['total_tax']),
                self.format_currency(profit['cost_of_goods']),
                self.format_currency(profit['expenses']),
                self.format_currency(profit['net_profit']),
                f"{profit['net_margin']:.1f}%",
            ]
        })

        dfs['Payment Methods'] = pd.DataFrame(
            [
                {'Method': p['label'], 'Transactions': p['count'], 'Total': p['total'], 'Share': f"{p['percentage']:.1f}%"}
                for p in report['payment_analysis']
            ],
            columns=['Method', 'Transactions', 'Total', 'Share'],
        )

        dfs['Top Products'] = pd.DataFrame(
            [
                {'Product': p['name'], 'Units Sold': p['quantity_sold'], 'Revenue': p['revenue'], 'Profit': p['profit']}
                for p in report['top_products']
            ],
            columns=['Product', 'Units Sold', 'Revenue', 'Profit'],
        )

        dfs['Daily Breakdown'] = pd.DataFrame(
            [{'Date': d['date'], 'Total Sales': d['total'], 'Transactions': d['count']} for d in report['daily_breakdown']],
            columns=['Date', 'Total Sales', 'Transactions'],
        )
        return dfs

    def to_csv(self):
        """All sections in one CSV, each under its own title line"""
        buffer = io.StringIO()
        buffer.write(f"{self.store.name} sales report,{self.start_date} to {self.end_date}\n")
        for title, df in self.export_to_dataframe().items():
            buffer.write(f"\n{title}\n")
            df.to_csv(buffer, index=False)
        return buffer.getvalue()

    def revenue_trend_chart(self):
        """Daily revenue as a plotly figure serialised to JSON"""
        days = pd.date_range(self.start_date, self.end_date, freq='D')
        df = pd.DataFrame({'date': days.strftime('%Y-%m-%d'), 'revenue': 0.0})
        totals = {d['date']: d['total'] for d in self._generate_daily_breakdown(self.completed_sales())}
        df['revenue'] = df['date'].map(totals).fillna(0.0)

        fig = px.line(df, x='date', y='revenue', markers=True,
                      title=f"Revenue {self.start_date} to {self.end_date}",
                      labels={'date': 'Date', 'revenue': 'Revenue (KES)'})
        return pio.to_json(fig)


class ProductProfitabilityReport(ReportGenerator):
    """
    Per-product revenue, cost, profit and sales velocity over the range,
    with the products worth pushing and the ones worth dropping.
    """
    FAST_MOVER_UNITS_PER_DAY = 10
    LOW_MARGIN_PERCENT = 10
    DISCONTINUE_UNITS_PER_DAY = 2

    def dataframe(self):
        rows = SaleItem.objects.filter(
            sale__store=self.store,
            sale__status='COMPLETED',
            sale__created_at__date__range=[self.start_date, self.end_date],
        ).values('product_id', 'product_name').annotate(
            units=Sum('quantity'),
            revenue=Sum('total_price'),
            cost=Sum(ExpressionWrapper(F('cost_price') * F('quantity'), output_field=DecimalField())),
        )
        df = pd.DataFrame(
            [{**row, 'revenue': float(row['revenue'] or 0), 'cost': float(row['cost'] or 0)} for row in rows],
            columns=['product_id', 'product_name', 'units', 'revenue', 'cost'],
        )
        days = (self.end_date - self.start_date).days + 1
        df['profit'] = df['revenue'] - df['cost']
        df['margin'] = (df['profit'] / df['revenue'].where(df['revenue'] != 0) * 100).fillna(0.0).round(1)
        df['units_per_day'] = (df['units'].astype(float) / days).round(2)
        total_profit = df['profit'].sum()
        df['profit_share'] = (df['profit'] / total_profit * 100).round(1) if total_profit else 0.0
        return df.sort_values('profit', ascending=False).reset_index(drop=True)

    def _records(self, df):
        return [
            {
                'product_id': int(row.product_id) if pd.notna(row.product_id) else None,
                'name': row.product_name,
                'units_sold': int(row.units),
                'revenue': round(row.revenue, 2),
                'cost': round(row.cost, 2),
                'profit': round(row.profit, 2),
                'margin': float(row.margin),
                'units_per_day': float(row.units_per_day),
                'profit_share': float(row.profit_share),
            }
            for row in df.itertuples()
        ]

    def generate(self, limit=10):
        df = self.dataframe()
        discontinue = df[(df['profit'] < 0) & (df['units_per_day'] < self.DISCONTINUE_UNITS_PER_DAY)]
        return {
            'period': f"{self.start_date} to {self.end_date}",
            'products': self._records(df),
            'top_products': self._records(df.head(limit)),
            'bottom_products': self._records(df.tail(limit).iloc[::-1]),
            'fast_movers': self._records(df[df['units_per_day'] >= self.FAST_MOVER_UNITS_PER_DAY]),
            'low_margin': self._records(df[df['margin'] <= self.LOW_MARGIN_PERCENT]),
            'discontinue': [
                {**record, 'reason': 'Sells at a loss and moves slowly'}
                for record in self._records(discontinue)
            ],
            'total_profit': round(float(df['profit'].sum()), 2),
        }
