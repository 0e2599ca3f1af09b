"""
Run the ChemDoc Processor API
"""
import uvicorn
from chemdoc.config import settings


def main():
    """Run the application"""
    print(f"Starting HTTP server on http://{settings.HOST}:{settings.PORT}")

    uvicorn.run(
        "chemdoc.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    main()
