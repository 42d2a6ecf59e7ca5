import asyncio
import os
import sys
import importlib.util

# Add project root to sys.path
sys.path.append(os.getcwd())

def check_import(package_name):
    print(f"[Check] Import: {package_name} ... ", end="")
    if importlib.util.find_spec(package_name):
        print("OK")
        return True
    print("FAILED (pip install required)")
    return False

async def check_substrate(settings):
    from store_orchestrator.main import build_substrate
    print(f"[Check] Substrate ({settings.SUBSTRATE_BACKEND}) ... ", end="")
    try:
        substrate = build_substrate(settings)
    except (OSError, ValueError) as e:
        print(f"FAILED\n  Error: {e}")
        return False
    print(f"\n  API server: {getattr(substrate, '_base_url', 'in-memory')} ... ", end="")
    try:
        await substrate.ping()
        print("OK")
        return True
    except Exception as e:
        print(f"FAILED\n  Error: {e}")
        return False
    finally:
        await substrate.close()

async def check_redis(url):
    if not url:
        print("[Check] Redis: not configured (in-process rate window) ... SKIPPED")
        return True
    import redis.asyncio as aioredis
    print(f"[Check] Redis: {url} ... ", end="")
    try:
        r = aioredis.from_url(url)
        await r.ping()
        await r.aclose()
        print("OK")
        return True
    except Exception as e:
        print(f"FAILED\n  Error: {e}")
        return False

def check_engines(default_engine):
    from store_orchestrator.provisioning.engines import EngineCatalog
    from store_orchestrator.provisioning.pipeline import registered_steps
    print("[Check] Engine catalog ... ", end="")
    catalog = EngineCatalog()
    catalog.load_directory(registered_steps=registered_steps())
    if default_engine not in catalog:
        print(f"FAILED (DEFAULT_ENGINE '{default_engine}' not loaded; have: {', '.join(catalog.names()) or 'none'})")
        return False
    print(f"OK ({', '.join(catalog.names())})")
    return True

async def main():
    print("=== Store Orchestrator Environment Verification ===\n")

    # 1. Check Dependencies
    pkgs = ["fastapi", "uvicorn", "pydantic_settings", "httpx", "redis", "yaml"]
    if not all(check_import(p) for p in pkgs):
        print("\n[FATAL] Missing dependencies. Run: pip install -e .")
        return

    # 2. Load Settings
    try:
        from store_orchestrator.core.config import OrchestratorSettings
        settings = OrchestratorSettings()
        print(f"[Info] Loaded Config: backend={settings.SUBSTRATE_BACKEND}, domain={settings.STORE_BASE_DOMAIN}")
    except Exception as e:
        print(f"\n[FATAL] Configuration load failed: {e}")
        print("  -> Check your .env file format")
        return

    # 3. Infrastructure Checks
    engines_ok = check_engines(settings.DEFAULT_ENGINE)
    substrate_ok = await check_substrate(settings)
    redis_ok = await check_redis(settings.RATE_LIMIT_REDIS_URL)

    print("\n=== Summary ===")
    if engines_ok and substrate_ok and redis_ok:
        print("[OK] Environment Ready. You can now start the service:")
        print("     uvicorn store_orchestrator.main:app --host 0.0.0.0 --port 8000")
    else:
        print("[WARN] Environment Issues Found")
        if not engines_ok:
            print("   - Check the YAML files under store_orchestrator/engines/")
        if not substrate_ok:
            print("   - Ensure the cluster is reachable and your kubeconfig (or KUBE_API_URL / KUBE_TOKEN) is correct")
        if not redis_ok:
            print("   - Ensure Redis is running and RATE_LIMIT_REDIS_URL is correct")

if __name__ == "__main__":
    asyncio.run(main())
