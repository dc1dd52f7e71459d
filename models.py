# models.py
from sqlalchemy import Column, Integer, Text
from database import Base

class Task(Base):
    __tablename__ = "reqs" # 테이블 이름
    __table_args__ = {"sqlite_autoincrement": True}  # id 재사용 안 함

    id = Column(Integer, primary_key=True)
    task = Column(Text, nullable=False)      # 할 일 내용
    deadline = Column(Text, nullable=False)  # 마감 (문자열 그대로 저장)
