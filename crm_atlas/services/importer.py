"""
CSV importers — metric snapshots and flows.

Every row is handled on its own: a bad row adds one message to `errors` and
is counted as skipped, the rest of the file still lands. Metric snapshots are
upserted on their natural key, so re-importing a period overwrites it.
"""
import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from crm_atlas.config import CHANNELS, FLOW_PURPOSES, PERIOD_TYPES, TRIGGER_TYPES
from crm_atlas.models.flow import Flow
from crm_atlas.models.metric_snapshot import MetricSnapshot
from crm_atlas.models.product import Product

logger = logging.getLogger('services.importer')

METRIC_REQUIRED_COLUMNS = ['workflow_id', 'period_start_date', 'period_type', 'channel', 'sends', 'opens', 'clicks']
OPTIONAL_COUNT_COLUMNS = ['unsubs', 'bounces', 'complaints', 'delivered']

# rate column -> count column it derives from when absent
DERIVED_RATES = {
    'open_rate': 'opens',
    'click_rate': 'clicks',
    'unsub_rate': 'unsubs',
    'bounce_rate': 'bounces',
    'complaint_rate': 'complaints',
}

FLOW_REQUIRED_COLUMNS = ['product', 'flow_name', 'trigger_type', 'channels']

_TRUTHY = {'true', 'yes', 'y', '1', 'live'}


@dataclass
class ImportResult:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self):
        return {
            'success': self.success,
            'imported': self.imported,
            'updated': self.updated,
            'skipped': self.skipped,
            'errors': self.errors,
        }


class RowError(ValueError):
    """A single CSV row failed validation."""


def parse_csv(stream) -> List[Dict[str, str]]:
    """Read an uploaded CSV (bytes or text stream) into dict rows with stripped headers."""
    raw = stream.read()
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8-sig')
    reader = csv.DictReader(io.StringIO(raw))
    rows = []
    for row in reader:
        rows.append({
            (k or '').strip().lower(): (v.strip() if isinstance(v, str) else v)
            for k, v in row.items()
        })
    return rows


# ── Field parsing ────────────────────────────────────────────────────────────

def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == '')


def _parse_int(row, column, required=False) -> Optional[int]:
    value = row.get(column)
    if _blank(value):
        if required:
            raise RowError(f"missing {column}")
        return None
    try:
        return int(float(str(value).replace(',', '')))
    except ValueError:
        raise RowError(f"invalid {column} '{value}'")


def _parse_float(row, column) -> Optional[float]:
    value = row.get(column)
    if _blank(value):
        return None
    try:
        return float(str(value).replace('%', '').replace(',', ''))
    except ValueError:
        raise RowError(f"invalid {column} '{value}'")


def _parse_date(row, column) -> date:
    value = row.get(column)
    if _blank(value):
        raise RowError(f"missing {column}")
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise RowError(f"invalid {column} '{value}'")


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in _TRUTHY


def derive_rate(count: Optional[int], sends: Optional[int]) -> Optional[float]:
    """count / sends * 100, or None without a count or with zero sends."""
    if count is None or not sends:
        return None
    return count / sends * 100


def parse_channels(raw: str) -> List[str]:
    """Split "Email + Push, In App" style text into known channel names."""
    channels = []
    for part in re.split(r'[,+&]', raw or ''):
        name = re.sub(r'\s+', '_', part.strip().lower())
        if name in CHANNELS and name not in channels:
            channels.append(name)
    return channels


def _metric_values(row: Dict) -> Dict:
    workflow_id = (row.get('workflow_id') or '').strip()
    if not workflow_id:
        raise RowError('missing workflow_id')

    period_type = (row.get('period_type') or '').strip().lower()
    if period_type not in PERIOD_TYPES:
        raise RowError(f"invalid period_type '{row.get('period_type')}'")

    channel = (row.get('channel') or '').strip().lower()
    if not channel:
        raise RowError('missing channel')

    values = {
        'workflow_id': workflow_id,
        'period_type': period_type,
        'channel': channel,
        'period_start_date': _parse_date(row, 'period_start_date'),
        'sends': _parse_int(row, 'sends', required=True),
        'opens': _parse_int(row, 'opens', required=True),
        'clicks': _parse_int(row, 'clicks', required=True),
    }
    for column in OPTIONAL_COUNT_COLUMNS:
        values[column] = _parse_int(row, column)

    for rate, count in DERIVED_RATES.items():
        provided = _parse_float(row, rate)
        values[rate] = provided if provided is not None else derive_rate(values[count], values['sends'])

    values['ctor'] = derive_rate(values['clicks'], values['opens'])
    return values


# ── Metric snapshots ─────────────────────────────────────────────────────────

def import_metric_rows(session, rows: Iterable[Dict], batch_id: str, source: str = 'csv') -> ImportResult:
    """Upsert metric snapshots from CSV rows. Commits after every row."""
    result = ImportResult()

    for line_no, row in enumerate(rows, start=2):
        label = f"Row {line_no} ({row.get('workflow_id') or '?'})"
        try:
            values = _metric_values(row)

            flow = session.query(Flow.id).filter_by(iterable_id=values['workflow_id']).first()
            values['flow_id'] = flow.id if flow else None
            values['import_batch_id'] = batch_id
            values['source'] = source

            snapshot = session.query(MetricSnapshot).filter_by(
                workflow_id=values['workflow_id'],
                channel=values['channel'],
                period_type=values['period_type'],
                period_start_date=values['period_start_date'],
            ).first()

            if snapshot is None:
                session.add(MetricSnapshot(**values))
            else:
                for key, value in values.items():
                    setattr(snapshot, key, value)
            session.commit()

            if snapshot is None:
                result.imported += 1
            else:
                result.updated += 1

        except RowError as e:
            result.skipped += 1
            result.errors.append(f"{label}: {e}")
        except SQLAlchemyError as e:
            session.rollback()
            result.skipped += 1
            result.errors.append(f"{label}: {e.__class__.__name__}")
            logger.error("Failed to import metric row %d", line_no, exc_info=True,
                         extra={'batch_id': batch_id, 'workflow_id': row.get('workflow_id')})

    logger.info("Metric import %s: %d imported, %d updated, %d skipped",
                batch_id, result.imported, result.updated, result.skipped)
    return result


# ── Flows ────────────────────────────────────────────────────────────────────

def _get_or_create_product(session, name: str) -> Product:
    product = session.query(Product).filter_by(name=name).first()
    if product is None:
        product = Product(name=name)
        session.add(product)
        session.flush()
    return product


def import_flow_rows(session, rows: Iterable[Dict]) -> ImportResult:
    """Create flows from CSV rows, creating products by name as needed."""
    result = ImportResult()

    for line_no, row in enumerate(rows, start=2):
        flow_name = (row.get('flow_name') or '').strip()
        product_name = (row.get('product') or '').strip()
        label = f"Row {line_no} ({flow_name or '?'})"
        try:
            missing = [c for c in FLOW_REQUIRED_COLUMNS if _blank(row.get(c))]
            if missing:
                raise RowError(f"missing {', '.join(missing)}")

            trigger_type = row['trigger_type'].strip().lower()
            if trigger_type not in TRIGGER_TYPES:
                raise RowError(f"invalid trigger_type '{row['trigger_type']}'")

            purpose = (row.get('purpose') or 'retention').strip().lower()
            if purpose not in FLOW_PURPOSES:
                raise RowError(f"invalid purpose '{row.get('purpose')}'")

            channels = parse_channels(row['channels'])
            if not channels:
                raise RowError(f"no known channels in '{row['channels']}'")

            product = _get_or_create_product(session, product_name)
            existing = session.query(Flow.id).filter_by(product_id=product.id, name=flow_name).first()
            if existing:
                raise RowError(f'Flow "{flow_name}" already exists for {product_name}')

            session.add(Flow(
                product_id=product.id,
                name=flow_name,
                purpose=purpose,
                description=row.get('description') or None,
                trigger_type=trigger_type,
                frequency=row.get('frequency') or None,
                channels=channels,
                live=_parse_bool(row.get('live')),
                sto=_parse_bool(row.get('sto')),
                iterable_id=row.get('iterable_id') or None,
            ))
            session.commit()
            result.imported += 1

        except RowError as e:
            session.rollback()
            result.skipped += 1
            result.errors.append(f"{label}: {e}")
        except SQLAlchemyError as e:
            session.rollback()
            result.skipped += 1
            result.errors.append(f"{label}: {e.__class__.__name__}")
            logger.error("Failed to import flow row %d", line_no, exc_info=True)

    logger.info("Flow import: %d imported, %d skipped", result.imported, result.skipped)
    return result
