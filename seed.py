"""
Seed script to populate both stores with a few chairs and estates.

Run this script after setting up the databases:
    python seed.py
"""
from isuumo.context import build_context
from isuumo.logging_config import get_logger
from isuumo.services import bulk_loader


logger = get_logger("seed")


# id,name,description,thumbnail,price,height,width,depth,color,features,kind,popularity,stock
CHAIR_CSV = """\
1,ゲーミングチェア Pro,長時間でも疲れにくい,/images/chair/1.png,14800,125,65,65,黒,"リクライニング,ヘッドレスト",ゲーミングチェア,4521,5
2,ふかふか座椅子,和室にぴったり,/images/chair/2.png,3980,60,55,70,ベージュ,折りたたみ可,座椅子,1203,12
3,ワークチェア Ergo,腰をしっかり支える,/images/chair/3.png,9800,110,62,60,ネイビー,"ランバーサポート,キャスター,肘掛け",エルゴノミクス,3310,3
4,ハンモックチェア,ゆらゆら揺れる,/images/chair/4.png,5600,160,90,90,緑,,ハンモック,870,1
"""

# id,name,description,thumbnail,address,latitude,longitude,rent,door_height,door_width,features,popularity
ESTATE_CSV = """\
1,駅近ワンルーム,駅から徒歩3分,/images/estate/1.png,東京都渋谷区,35.658,139.701,85000,200,90,"ワンルーム,オートロック",5120
2,ファミリー向け3LDK,広いリビング,/images/estate/2.png,東京都世田谷区,35.646,139.653,182000,210,120,"駐車場あり,追い焚き風呂",2890
3,最上階の角部屋,眺望良好,/images/estate/3.png,東京都港区,35.658,139.751,128000,205,100,"最上階,エレベーター",4012
"""


def seed_database():
    """Seed both stores with sample listings."""
    context = build_context()
    try:
        context.create_schema()
        chairs = bulk_loader.load_chairs(context, CHAIR_CSV)
        estates = bulk_loader.load_estates(context, ESTATE_CSV)
        logger.info("seeded %d chairs and %d estates", chairs, estates)
    finally:
        context.dispose()


if __name__ == "__main__":
    seed_database()
