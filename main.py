from dotenv import load_dotenv
import uvicorn

load_dotenv()

if __name__ == '__main__':
    import os

    uvicorn.run("app:app",
                app_dir="backend",
                host=os.getenv("HOST", "127.0.0.1"),
                port=int(os.getenv("PORT", "8000")),
                reload=True)
