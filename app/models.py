from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from .database import Base


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True)
    name = Column("material_name", String(255), nullable=False)
    waste_percentage = Column("wasting_percentage", Numeric(5, 2))

    # удаление материала, на который ссылается продукт, запрещает сама БД (RESTRICT)
    products = relationship("Product", back_populates="material", passive_deletes="all")


class ProductType(Base):
    __tablename__ = "products_types"

    id = Column(Integer, primary_key=True)
    name = Column("type_name", String(255), nullable=False)
    ratio = Column("type_ratio", Numeric(10, 2))

    products = relationship("Product", back_populates="product_type", passive_deletes="all")


class Workshop(Base):
    __tablename__ = "workshops"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    kind = Column("type", String(100))

    product_links = relationship("ProductWorkshop", back_populates="workshop", passive_deletes=True)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("idx_products_material", "material_id"),
        Index("idx_products_type", "type_id"),
    )

    id = Column(Integer, primary_key=True)
    name = Column("product_name", String(255), nullable=False)
    material_id = Column(
        Integer,
        ForeignKey("materials.id", name="fk_products_material", ondelete="RESTRICT"),
        nullable=False,
    )
    type_id = Column(
        Integer,
        ForeignKey("products_types.id", name="fk_products_type", ondelete="RESTRICT"),
        nullable=False,
    )
    min_price = Column(Numeric(10, 2))
    article = Column(String(100))

    material = relationship("Material", back_populates="products")
    product_type = relationship("ProductType", back_populates="products")
    workshop_links = relationship("ProductWorkshop", back_populates="product", passive_deletes=True)


class ProductWorkshop(Base):
    __tablename__ = "products_workshop"
    __table_args__ = (
        UniqueConstraint("product_id", "workshop_id", name="unique_product_workshop"),
        Index("idx_pw_product", "product_id"),
        Index("idx_pw_workshop", "workshop_id"),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", name="fk_pw_product", ondelete="CASCADE"),
        nullable=False,
    )
    workshop_id = Column(
        Integer,
        ForeignKey("workshops.id", name="fk_pw_workshop", ondelete="CASCADE"),
        nullable=False,
    )
    production_time = Column(Numeric(10, 2))

    product = relationship("Product", back_populates="workshop_links")
    workshop = relationship("Workshop", back_populates="product_links")
