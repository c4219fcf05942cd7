"""
Script de backfill de facturas recurrentes

Detecta las fechas programadas de cada plantilla activa que no tienen una
factura generada y las genera en orden.

Uso:
    python scripts/backfill_recurring_invoices.py --dry-run
    python scripts/backfill_recurring_invoices.py --user-id 3 --until 2026-06-30
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

# Agregar el directorio raíz al path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.database.connection import close_async_db, get_async_db, init_async_db
from src.services.recurring_service import backfill_templates
from src.utils.logger import get_logger

logger = get_logger("scripts.backfill")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Genera las facturas recurrentes que faltan"
    )
    parser.add_argument("--user-id", type=int, default=None, help="Solo las plantillas de este usuario")
    parser.add_argument("--template-id", type=int, default=None, help="Solo esta plantilla")
    parser.add_argument(
        "--until",
        type=date.fromisoformat,
        default=None,
        help="Fecha límite (YYYY-MM-DD), por defecto hoy",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Solo muestra las fechas que faltan, sin generar nada",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Ejecuta el backfill. Devuelve el número de fechas que fallaron."""
    init_async_db()
    try:
        async with get_async_db() as db:
            results = await backfill_templates(
                db,
                hasta=args.until,
                user_id=args.user_id,
                template_id=args.template_id,
                dry_run=args.dry_run,
            )
    finally:
        await close_async_db()

    fallidas = 0
    print("\n" + "=" * 50)
    print("BACKFILL DE FACTURAS RECURRENTES" + (" (dry run)" if args.dry_run else ""))
    print("=" * 50)

    for result in results:
        print(f"\nPlantilla {result['template_id']}:")
        print(f"  Pendientes: {len(result['missing'])}")
        for fecha in result["missing"]:
            print(f"    - {fecha}")
        if not args.dry_run:
            print(f"  Generadas: {len(result['generated'])}")
            for generada in result["generated"]:
                print(f"    + {generada['fecha']} -> {generada['numero_factura']}")
        for fallo in result["failed"]:
            print(f"    ! {fallo['fecha']}: {fallo['error']}")
        fallidas += len(result["failed"])

    print("\n" + "=" * 50)
    print(f"Plantillas procesadas: {len(results)}")
    print("=" * 50)
    return fallidas


def main(argv=None) -> None:
    args = parse_args(argv)
    logger.info(
        f"Backfill: user_id={args.user_id}, template_id={args.template_id}, "
        f"until={args.until}, dry_run={args.dry_run}"
    )
    fallidas = asyncio.run(run(args))
    sys.exit(1 if fallidas else 0)


if __name__ == '__main__':
    main()
