#!/usr/bin/env python3
"""
Manage admin API keys (X-API-Key) for premium grants and the expiry sweep.
"""
import secrets
import sys

from app.core.database import SessionLocal, init_db
from app.models import AdminApiKey


def _session():
    if SessionLocal is None:
        print("[ERROR] DB_URL is not set")
        sys.exit(1)
    init_db()
    return SessionLocal()


def create_admin_key(name: str):
    """Creates a new admin key. The plain key is only returned here."""
    raw_key = secrets.token_urlsafe(32)
    db = _session()
    try:
        key = AdminApiKey(
            name=name,
            hashed_key=AdminApiKey.hash_key(raw_key),
            prefix=raw_key[:8],
            is_active=True,
        )
        db.add(key)
        db.commit()
        db.refresh(key)
        return {'id': key.id, 'name': key.name, 'api_key': raw_key, 'prefix': key.prefix}
    finally:
        db.close()


def list_admin_keys():
    db = _session()
    try:
        return (
            db.query(AdminApiKey)
            .filter(AdminApiKey.is_active == True)
            .order_by(AdminApiKey.created_at.desc())
            .all()
        )
    finally:
        db.close()


def revoke_admin_key(key_id: int):
    """Soft delete: the key stays in the table but is no longer accepted."""
    db = _session()
    try:
        key = db.query(AdminApiKey).filter(AdminApiKey.id == key_id).first()
        if not key:
            return None
        key.is_active = False
        db.commit()
        return key_id
    finally:
        db.close()


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Admin API key management for the Finance Tracker API')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    create_parser = subparsers.add_parser('create', help='Create a new admin key')
    create_parser.add_argument('name', help='Admin name, recorded as granted_by on premium grants')

    subparsers.add_parser('list', help='List active admin keys')

    revoke_parser = subparsers.add_parser('revoke', help='Revoke an admin key')
    revoke_parser.add_argument('key_id', type=int, help='ID of the key to revoke')

    args = parser.parse_args()

    if args.command == 'create':
        result = create_admin_key(args.name)
        print(f"[OK] Admin key {result['id']} created for '{result['name']}' (prefix {result['prefix']}...)")
        print("\n[!] Store this key now, it will not be shown again:")
        print(f"\n{result['api_key']}\n")
        print(f"   curl -X POST -H \"X-API-Key: {result['api_key']}\" http://localhost:8000/subscription/expire")

    elif args.command == 'list':
        keys = list_admin_keys()
        if not keys:
            print("No active admin keys.")
        for key in keys:
            print(f"ID: {key.id}  name={key.name}  prefix={key.prefix}...  "
                  f"created={key.created_at}  last_used={key.last_used_at or 'never'}")

    elif args.command == 'revoke':
        if revoke_admin_key(args.key_id):
            print(f"[OK] Admin key {args.key_id} revoked.")
        else:
            print(f"[ERROR] Admin key {args.key_id} not found.")
            sys.exit(1)

    else:
        parser.print_help()
