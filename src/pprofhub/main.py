import argparse
from fastapi import FastAPI
from .api.errors import register_exception_handlers
from .api.routes import router, get_parser
import json, pathlib

def make_app():
    app = FastAPI(title="pprofhub API")
    register_exception_handlers(app)
    app.include_router(router)
    return app

# Create the app instance for uvicorn
app = make_app()

def _cli():
    p = argparse.ArgumentParser(description="Upload, store and inspect Go pprof captures.")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--reload", action="store_true")
    p.add_argument("--profile", help="print the metadata extracted from a capture and exit")
    args = p.parse_args()

    if args.profile:
        metadata, _ = get_parser().parse_file(pathlib.Path(args.profile))
        print(json.dumps(metadata, indent=2))
        return

    import uvicorn
    uvicorn.run("pprofhub.main:app", host=args.host, port=args.port, reload=args.reload)

if __name__ == "__main__":
    _cli()
